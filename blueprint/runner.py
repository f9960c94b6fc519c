"""
runner.py

Responsibility: Drive one `copy` or `update` run from start to finish.

High-level flow:
1) Loading: read the schema and the template source tree
2) ResolvingAnswers: resolve the AnswerSet (prior answers first on update)
3) ResolvingPaths: evaluate guards and names into a plan
4) Rendering: write the plan, then the answers file
5) Done; post-generation tasks then run against the finished tree

Any fatal error moves the run to Failed and propagates unchanged. There is no
retry; a failed run is started again from the top. Everything a run needs is
created here and passed down, so repeated runs in one process share nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment

from blueprint.answers import AnswerSet, resolve_answers
from blueprint.answers_file import SRC_PATH_KEY, AnswersFileError, dump_answers, load_answers
from blueprint.environment import make_environment
from blueprint.hooks import HookFailure, HooksResult, run_tasks
from blueprint.paths import PlanEntry, load_rules, resolve_paths, template_root
from blueprint.prompts import Prompter
from blueprint.renderer import RenderResult, render_plan
from blueprint.schema import DEFAULT_ANSWERS_FILE, Schema, load_schema

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    LOADING = "Loading"
    RESOLVING_ANSWERS = "ResolvingAnswers"
    RESOLVING_PATHS = "ResolvingPaths"
    RENDERING = "Rendering"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class RunResult:
    source: Path
    destination: Path
    state: RunState = RunState.LOADING
    schema: Schema | None = None
    answers: AnswerSet | None = None
    plan: list[PlanEntry] = field(default_factory=list)
    render: RenderResult | None = None
    hooks: HooksResult | None = None
    answers_path: Path | None = None

    def advance(self, state: RunState) -> None:
        logger.debug("Run state: %s -> %s", self.state.value, state.value)
        self.state = state


def _run(
    src: Path,
    dst: Path,
    *,
    env: Environment,
    prior: Mapping[str, Any] | None,
    data: Mapping[str, Any] | None,
    use_defaults: bool,
    trust: bool,
    prompter: Prompter | None,
    update: bool,
    conflict: str,
) -> RunResult:
    run = RunResult(source=src, destination=dst)
    try:
        schema = load_schema(src, env)
        run.schema = schema
        root = template_root(src, schema.settings)
        rules = load_rules(root, schema.settings)

        run.advance(RunState.RESOLVING_ANSWERS)
        answers = resolve_answers(
            schema,
            env,
            prior=prior,
            overrides=data,
            use_defaults=use_defaults,
            prompter=prompter,
        )
        run.answers = answers

        run.advance(RunState.RESOLVING_PATHS)
        run.plan = resolve_paths(rules, root, answers, env, schema.settings)
        logger.info("Resolved %d path(s) from %s", len(run.plan), root)

        run.advance(RunState.RENDERING)
        run.render = render_plan(
            run.plan,
            dst,
            answers,
            env,
            update=update,
            conflict=conflict,
            skip_if_exists=schema.settings.skip_if_exists,
        )
        run.answers_path = dump_answers(
            dst,
            answers,
            src_path=src,
            filename=schema.settings.answers_file,
        )
    except BaseException:
        run.advance(RunState.FAILED)
        raise

    run.advance(RunState.DONE)
    try:
        run.hooks = run_tasks(schema.settings.tasks, dst, answers, env, trust=trust)
    except HookFailure as e:
        # Generation itself succeeded; let the caller see what was written.
        e.result = run
        raise
    return run


def copy(
    src: str | Path,
    dst: str | Path,
    *,
    data: Mapping[str, Any] | None = None,
    use_defaults: bool = False,
    trust: bool = False,
    prompter: Prompter | None = None,
) -> RunResult:
    """
    Generate a new project from the template at `src` into `dst`.
    """
    return _run(
        Path(src).resolve(),
        Path(dst).resolve(),
        env=make_environment(),
        prior=None,
        data=data,
        use_defaults=use_defaults,
        trust=trust,
        prompter=prompter,
        update=False,
        conflict="overwrite",
    )


def update(
    dst: str | Path,
    *,
    src: str | Path | None = None,
    data: Mapping[str, Any] | None = None,
    use_defaults: bool = False,
    trust: bool = False,
    prompter: Prompter | None = None,
    conflict: str = "skip",
    answers_file: str = DEFAULT_ANSWERS_FILE,
) -> RunResult:
    """
    Re-run the template recorded in `dst`'s answers file, using the recorded
    answers as defaults.
    """
    dst_path = Path(dst).resolve()
    prior, metadata = load_answers(dst_path, filename=answers_file)

    if src is None:
        recorded = metadata.get(SRC_PATH_KEY)
        if not recorded:
            raise AnswersFileError(
                f"{dst_path / answers_file} does not record a template ({SRC_PATH_KEY}); pass the source explicitly"
            )
        src = recorded

    return _run(
        Path(src).resolve(),
        dst_path,
        env=make_environment(),
        prior=prior,
        data=data,
        use_defaults=use_defaults,
        trust=trust,
        prompter=prompter,
        update=True,
        conflict=conflict,
    )
