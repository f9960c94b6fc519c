"""
hooks.py

Responsibility: Run a template's post-generation tasks.

Tasks run in declared order, in the destination directory, after everything
has been written. A string task runs through the shell; a list task runs as
an argv. Each is rendered with the answers first. Tasks are arbitrary
commands from the template author, so they only run when the caller trusts
the template.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

from jinja2 import Environment, TemplateError

from blueprint.environment import render_string

logger = logging.getLogger(__name__)

Task = str | Sequence[str]


class HookFailure(RuntimeError):
    def __init__(self, command: str, output: str, returncode: int | None = None) -> None:
        detail = f"exit code {returncode}" if returncode is not None else "could not be started"
        super().__init__(f"Task failed ({detail}): {command}\n\n{output}".rstrip())
        self.command = command
        self.output = output
        self.returncode = returncode
        # Set by the runner once the run that owns the hooks is known.
        self.result: Any = None


@dataclass
class HooksResult:
    ran: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _render_task(env: Environment, task: Task, bindings: Mapping[str, Any]) -> str | list[str]:
    try:
        if isinstance(task, str):
            return render_string(env, task, bindings)
        return [render_string(env, arg, bindings) for arg in task]
    except TemplateError as e:
        raise HookFailure(_describe(task), f"could not render task: {e}") from e


def _describe(cmd: str | Sequence[str]) -> str:
    return cmd if isinstance(cmd, str) else " ".join(cmd)


def _run(cmd: str | list[str], *, cwd: Path) -> None:
    """
    Run a task, raising a HookFailure on a non-zero exit.
    """
    try:
        subprocess.run(
            cmd,
            cwd=str(cwd),
            shell=isinstance(cmd, str),
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except subprocess.CalledProcessError as e:
        raise HookFailure(_describe(cmd), e.stdout or "", e.returncode) from e
    except OSError as e:
        raise HookFailure(_describe(cmd), str(e)) from e


def run_tasks(
    tasks: Sequence[Task],
    destination_dir: str | Path,
    bindings: Mapping[str, Any],
    env: Environment,
    *,
    trust: bool,
) -> HooksResult:
    result = HooksResult()
    if not tasks:
        return result

    if not trust:
        result.skipped = [_describe(t) for t in tasks]
        logger.warning(
            "Skipping %d task(s) from an untrusted template; pass --trust to run them",
            len(tasks),
        )
        return result

    cwd = Path(destination_dir)
    for task in tasks:
        cmd = _render_task(env, task, bindings)
        logger.info("Running task: %s", _describe(cmd))
        _run(cmd, cwd=cwd)
        result.ran.append(_describe(cmd))
    return result
