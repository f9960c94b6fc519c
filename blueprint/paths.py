"""
paths.py

Responsibility: Turn a template source tree into the list of output paths.

Rules:
- The source tree is read once into `PathRule`s, in deterministic depth-first
  order (sorted names, directories before their contents).
- Each path segment is parsed once. The canonical guard form
  `{% if EXPR %}NAME{% endif %}` is split into a guard expression and a name
  template; any other Jinja2 in a segment is rendered as a whole, and an empty
  result means "excluded".
- A segment that is excluded prunes the whole subtree. Descendants are never
  evaluated, since they may reference answers that only make sense when the
  feature is on.
- Files ending in the templates suffix have their content rendered and lose
  the suffix. Other files are copied byte-for-byte.
- Two sources resolving to one destination is an error, raised before
  anything is written.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from jinja2 import Environment

from blueprint.environment import evaluate, is_template, referenced_names, render_string
from blueprint.schema import SCHEMA_FILENAMES, Settings

logger = logging.getLogger(__name__)

BUILTIN_EXCLUDES = (*SCHEMA_FILENAMES, ".git")

_GUARD = re.compile(
    r"^\{%-?\s*if\s+(?P<guard>.+?)\s*-?%\}(?P<name>.*)\{%-?\s*endif\s*-?%\}$",
    re.DOTALL,
)
_ENDIF = re.compile(r"\{%-?\s*endif")
_BRANCH = re.compile(r"\{%-?\s*(?:if|elif|else)\b")


class PathError(RuntimeError):
    pass


class PathCollisionError(PathError):
    def __init__(self, destination: PurePosixPath, first: PurePosixPath, second: PurePosixPath) -> None:
        super().__init__(f"Both '{first}' and '{second}' resolve to '{destination}'")
        self.destination = destination
        self.sources = (first, second)


class UnresolvedGuardError(PathError):
    def __init__(self, source: PurePosixPath, names: list[str]) -> None:
        super().__init__(f"'{source}' references unknown answer(s): {', '.join(names)}")
        self.source = source
        self.names = names


class RenderMode(str, Enum):
    VERBATIM = "verbatim-copy"
    SUBSTITUTE = "substitute-and-copy"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Segment:
    """One parsed path component."""

    raw: str
    name: str
    guard: str | None = None

    @classmethod
    def parse(cls, raw: str) -> "Segment":
        m = _GUARD.match(raw)
        # `{% if a %}x{% endif %}{% if b %}y{% endif %}` and `{% if a %}x{% else %}y{% endif %}`
        # also match the pattern; only a plain inner name makes a guard.
        if m and not _ENDIF.search(m.group("name")) and not _BRANCH.search(m.group("name")):
            return cls(raw=raw, name=m.group("name"), guard=m.group("guard"))
        return cls(raw=raw, name=raw)

    @property
    def is_static(self) -> bool:
        return self.guard is None and not is_template(self.name)

    def references(self, env: Environment) -> set[str]:
        return referenced_names(env, self.guard, expression=True) | referenced_names(env, self.name)

    def resolve(self, env: Environment, answers: Mapping[str, Any]) -> str | None:
        """
        Return the concrete name, or None when the segment is excluded.
        """
        if self.is_static:
            return self.raw
        if self.guard is not None and not evaluate(env, self.guard, answers):
            return None
        rendered = render_string(env, self.name, answers)
        if not rendered.strip():
            return None
        return rendered


@dataclass(frozen=True)
class PathRule:
    """A source path parsed into segments."""

    source: PurePosixPath
    segments: tuple[Segment, ...]
    is_dir: bool

    @classmethod
    def parse(cls, source: PurePosixPath, *, is_dir: bool) -> "PathRule":
        return cls(source=source, segments=tuple(Segment.parse(p) for p in source.parts), is_dir=is_dir)

    @property
    def leaf(self) -> Segment:
        return self.segments[-1]


@dataclass(frozen=True)
class PlanEntry:
    destination: PurePosixPath
    source: Path
    mode: RenderMode


def _excluded(relative: PurePosixPath, patterns: tuple[str, ...]) -> bool:
    return any(relative.match(pattern) for pattern in patterns)


def template_root(template_dir: str | Path, settings: Settings) -> Path:
    root = Path(template_dir).resolve()
    if settings.subdirectory:
        root = root / settings.subdirectory
    if not root.is_dir():
        raise PathError(f"Template source directory not found: {root}")
    return root


def load_rules(root: Path, settings: Settings) -> list[PathRule]:
    """
    Read the source tree under `root` into rules, depth-first, sorted by name,
    each directory before its contents. Excluded entries are not descended.
    """
    patterns = BUILTIN_EXCLUDES + settings.exclude
    rules: list[PathRule] = []

    def walk(directory: Path, prefix: PurePosixPath) -> None:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
        for entry in entries:
            relative = prefix / entry.name
            if _excluded(relative, patterns):
                logger.debug("Excluded %s", relative)
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            rules.append(PathRule.parse(relative, is_dir=is_dir))
            if is_dir:
                walk(Path(entry.path), relative)

    walk(root, PurePosixPath())
    return rules


def _has_markers(path: Path) -> bool:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return False
    return is_template(text)


def _file_mode(name: str, source: Path, suffix: str) -> tuple[str, RenderMode]:
    if suffix:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)], RenderMode.SUBSTITUTE
        return name, RenderMode.VERBATIM
    # No suffix configured: render any text file that carries Jinja2 markers.
    if _has_markers(source):
        return name, RenderMode.SUBSTITUTE
    return name, RenderMode.VERBATIM


def _resolve_segment(
    env: Environment, rule: PathRule, answers: Mapping[str, Any]
) -> str | None:
    segment = rule.leaf
    try:
        missing = sorted(segment.references(env) - set(answers))
        if missing:
            raise UnresolvedGuardError(rule.source, missing)
        name = segment.resolve(env, answers)
    except PathError:
        raise
    except Exception as e:  # noqa: BLE001
        raise PathError(f"Cannot evaluate '{rule.source}': {e}") from e
    if name is None:
        return None
    if "/" in name or "\\" in name or name in {".", ".."}:
        raise PathError(f"'{rule.source}' resolves to an unsafe name: {name!r}")
    return name


def resolve_paths(
    rules: list[PathRule],
    root: Path,
    answers: Mapping[str, Any],
    env: Environment,
    settings: Settings,
) -> list[PlanEntry]:
    """
    Evaluate `rules` against `answers` and return the surviving entries in
    rule order.
    """
    resolved_dirs: dict[PurePosixPath, PurePosixPath] = {PurePosixPath(): PurePosixPath()}
    pruned: set[PurePosixPath] = set()
    claimed: dict[PurePosixPath, PurePosixPath] = {}
    plan: list[PlanEntry] = []

    for rule in rules:
        parent = rule.source.parent
        if parent in pruned:
            if rule.is_dir:
                pruned.add(rule.source)
            continue

        name = _resolve_segment(env, rule, answers)
        if name is None:
            logger.debug("Pruned %s", rule.source)
            if rule.is_dir:
                pruned.add(rule.source)
            continue

        source = root.joinpath(*rule.source.parts)
        if rule.is_dir:
            mode = RenderMode.DIRECTORY
        else:
            name, mode = _file_mode(name, source, settings.templates_suffix)

        destination = resolved_dirs[parent] / name
        if destination in claimed:
            raise PathCollisionError(destination, claimed[destination], rule.source)
        claimed[destination] = rule.source
        if rule.is_dir:
            resolved_dirs[rule.source] = destination

        plan.append(PlanEntry(destination=destination, source=source, mode=mode))

    return plan
