"""
renderer.py

Responsibility: Materialize a resolved plan into a destination directory.

Rules:
- Every rendered file is rendered in memory before anything touches the
  destination, so a rendering error leaves the destination as it was.
- Directories are created idempotently.
- Verbatim files are copied byte-for-byte, with permissions (`shutil.copy2`).
- Rendered files are written with `\\n` newlines and the source's permissions.
- In update mode an existing file whose bytes already equal the new output is
  left untouched (mtime preserved); a differing file is a conflict, reported
  to the caller and only written under the `overwrite` policy.

This module intentionally does NOT know about questions, prompting or hooks.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from jinja2 import Environment, TemplateError, UndefinedError

from blueprint.paths import PlanEntry, RenderMode

logger = logging.getLogger(__name__)

CONFLICT_POLICIES = ("skip", "overwrite")


class RenderError(RuntimeError):
    def __init__(self, source: Path, reason: str) -> None:
        super().__init__(f"Failed rendering template file {source}: {reason}")
        self.source = source
        self.reason = reason


@dataclass
class RenderResult:
    rendered_files: int = 0
    copied_files: int = 0
    unchanged_files: int = 0
    skipped_files: int = 0
    directories: int = 0
    conflicts: list[PurePosixPath] = field(default_factory=list)


def _render_file(env: Environment, source: Path, bindings: Mapping[str, Any]) -> bytes:
    try:
        text = source.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise RenderError(source, "not a UTF-8 text file") from e
    try:
        out = env.from_string(text).render(**bindings)
    except UndefinedError as e:
        raise RenderError(source, e.message or "undefined value") from e
    except TemplateError as e:  # syntax errors and failing filters
        raise RenderError(source, str(e)) from e
    # Normalize newlines for stable cross-platform output.
    return out.replace("\r\n", "\n").encode("utf-8")


def _matches(relative: PurePosixPath, patterns: tuple[str, ...]) -> bool:
    return any(relative.match(pattern) for pattern in patterns)


def render_plan(
    plan: list[PlanEntry],
    destination_dir: str | Path,
    bindings: Mapping[str, Any],
    env: Environment,
    *,
    update: bool = False,
    conflict: str = "skip",
    skip_if_exists: tuple[str, ...] = (),
) -> RenderResult:
    """
    Write every entry of `plan` under `destination_dir`, in plan order.
    """
    if conflict not in CONFLICT_POLICIES:
        raise ValueError(f"conflict must be one of {', '.join(CONFLICT_POLICIES)}")

    dst_dir = Path(destination_dir).resolve()

    rendered: dict[PurePosixPath, bytes] = {}
    for entry in plan:
        if entry.mode is RenderMode.SUBSTITUTE:
            rendered[entry.destination] = _render_file(env, entry.source, bindings)

    result = RenderResult()
    dst_dir.mkdir(parents=True, exist_ok=True)

    for entry in plan:
        dst_path = dst_dir / entry.destination

        if entry.mode is RenderMode.DIRECTORY:
            dst_path.mkdir(parents=True, exist_ok=True)
            result.directories += 1
            continue

        dst_path.parent.mkdir(parents=True, exist_ok=True)
        exists = dst_path.is_file()

        if exists and _matches(entry.destination, skip_if_exists):
            logger.info("Skipping existing %s", entry.destination)
            result.skipped_files += 1
            continue

        content = rendered.get(entry.destination)
        if exists and update:
            new_bytes = content if content is not None else entry.source.read_bytes()
            if dst_path.read_bytes() == new_bytes:
                result.unchanged_files += 1
                continue
            result.conflicts.append(entry.destination)
            if conflict == "skip":
                logger.warning("Conflict: %s differs from the template, left as is", entry.destination)
                continue
            logger.warning("Conflict: overwriting %s", entry.destination)

        if content is None:
            shutil.copy2(entry.source, dst_path)
            result.copied_files += 1
        else:
            dst_path.write_bytes(content)
            shutil.copymode(entry.source, dst_path)
            result.rendered_files += 1

    logger.info(
        "Wrote %d rendered and %d copied files into %s",
        result.rendered_files,
        result.copied_files,
        dst_dir,
    )
    return result
