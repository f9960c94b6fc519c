"""
cli.py

Responsibility: CLI entrypoint for blueprint.

Commands:
- `copy <source> <destination>`: generate a new project from a template
- `update <destination>`: re-apply the recorded template, reusing answers

Exit codes: 0 success, 1 generation failed, 2 usage error, 3 the project was
generated but a post-generation task failed, 130 aborted while answering.

This module only parses arguments and reports outcomes; the work happens in
`runner.py`.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Iterable

from blueprint import runner
from blueprint.answers_file import AnswersFileError
from blueprint.hooks import HookFailure
from blueprint.paths import PathError
from blueprint.prompts import AnswersAborted
from blueprint.renderer import CONFLICT_POLICIES, RenderError
from blueprint.schema import DEFAULT_ANSWERS_FILE, SchemaError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_HOOK_FAILED = 3
EXIT_ABORTED = 130

FATAL_ERRORS = (SchemaError, PathError, RenderError, AnswersFileError, OSError)


def _parse_data(pairs: Iterable[str]) -> dict[str, str]:
    data: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise argparse.ArgumentTypeError(f"invalid --data '{pair}'. Expected KEY=VALUE syntax.")
        key, value = pair.split("=", 1)
        key = key.strip()
        if not key:
            raise argparse.ArgumentTypeError("--data keys must not be empty")
        data[key] = value
    return data


def _env_trust() -> bool:
    return os.environ.get("BLUEPRINT_TRUST", "").strip().lower() in {"1", "true", "yes", "on"}


def _configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _report(result: runner.RunResult) -> None:
    render = result.render
    if render is None:
        return
    print(
        f"Generated {result.destination}: {render.rendered_files} rendered, "
        f"{render.copied_files} copied, {render.unchanged_files} unchanged"
    )
    for path in render.conflicts:
        print(f"  conflict: {path}")
    if result.hooks and result.hooks.skipped:
        print(f"  {len(result.hooks.skipped)} task(s) skipped (template not trusted)")


def copy_cmd(args: argparse.Namespace) -> int:
    result = runner.copy(
        args.source,
        args.destination,
        data=_parse_data(args.data),
        use_defaults=bool(args.defaults),
        trust=bool(args.trust) or _env_trust(),
    )
    _report(result)
    return EXIT_OK


def update_cmd(args: argparse.Namespace) -> int:
    result = runner.update(
        args.destination,
        src=args.source,
        data=_parse_data(args.data),
        use_defaults=bool(args.defaults),
        trust=bool(args.trust) or _env_trust(),
        conflict=args.conflict,
        answers_file=args.answers_file,
    )
    _report(result)
    return EXIT_OK


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--trust", action="store_true", help="Run the template's post-generation tasks (or set BLUEPRINT_TRUST=1)")
    p.add_argument("--defaults", action="store_true", help="Accept defaults without prompting")
    p.add_argument(
        "-d",
        "--data",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Answer a question up front (repeatable)",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="blueprint", description="blueprint - generate and update projects from templates")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    p.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("copy", help="Generate a new project from a template")
    c.add_argument("source", help="Template directory")
    c.add_argument("destination", help="Directory to generate into")
    _add_common(c)
    c.set_defaults(func=copy_cmd)

    u = sub.add_parser("update", help="Re-apply the recorded template to a generated project")
    u.add_argument("destination", help="Previously generated project")
    u.add_argument("--source", default=None, help="Template directory (default: the one recorded in the answers file)")
    u.add_argument(
        "--conflict",
        choices=CONFLICT_POLICIES,
        default="skip",
        help="What to do with files that differ from the template (default: skip)",
    )
    u.add_argument("--answers-file", default=DEFAULT_ANSWERS_FILE, help="Answers file name in the destination")
    _add_common(u)
    u.set_defaults(func=update_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)
    try:
        return int(args.func(args))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except HookFailure as e:
        if e.result is not None:
            _report(e.result)
        print(f"error: the project was generated, but a task failed: {e}", file=sys.stderr)
        return EXIT_HOOK_FAILED
    except AnswersAborted as e:
        print(f"aborted: {e}", file=sys.stderr)
        return EXIT_ABORTED
    except FATAL_ERRORS as e:
        logger.debug("Run failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
