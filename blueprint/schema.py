"""
schema.py

Responsibility: Load a template's `blueprint.yml` into typed questions and settings.

The schema is a YAML mapping. Keys starting with `_` are template settings;
every other key declares a question, either in full form:

    package_name:
      type: str
      help: Importable package name
      default: "{{ project_slug | replace('-', '_') }}"
      validator: "{% if not package_name.isidentifier() %}not a valid identifier{% endif %}"

or in short form (`include_docs: false`), where the literal is the default and
the kind is inferred from it.

Besides parsing, this module performs the static dependency check: every
name referenced from a `default`, `when` or `validator` must be a
declared question, and the references must not form a cycle. The result is
the order in which questions are evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, TemplateSyntaxError

from blueprint.environment import referenced_names

SCHEMA_FILENAMES = ("blueprint.yml", "blueprint.yaml")
DEFAULT_ANSWERS_FILE = ".blueprint-answers.yml"
DEFAULT_TEMPLATES_SUFFIX = ".jinja"
KINDS = ("str", "bool", "int", "float")

_KIND_ALIASES = {
    "str": "str",
    "string": "str",
    "bool": "bool",
    "boolean": "bool",
    "int": "int",
    "integer": "int",
    "float": "float",
    "number": "float",
}
_QUESTION_KEYS = {"type", "default", "help", "choices", "validator", "when"}


class SchemaError(ValueError):
    pass


@dataclass(frozen=True)
class Question:
    """A single configurable input declared by the template."""

    name: str
    kind: str = "str"
    default: Any = None
    help: str = ""
    choices: tuple[tuple[str, Any], ...] | None = None
    validator: str | None = None
    when: Any = True

    @property
    def prompt(self) -> str:
        return self.help or self.name

    def references(self, env: Environment) -> set[str]:
        """
        Names this question's expressions read. A validator reads the
        candidate value through the question's own name, so that one is not a
        dependency.
        """
        names = referenced_names(env, self.validator) - {self.name}
        names |= referenced_names(env, self.default)
        names |= referenced_names(env, self.when, expression=True)
        return names


@dataclass(frozen=True)
class Settings:
    """Template-level settings taken from the schema's `_`-prefixed keys."""

    subdirectory: str = ""
    templates_suffix: str = DEFAULT_TEMPLATES_SUFFIX
    answers_file: str = DEFAULT_ANSWERS_FILE
    exclude: tuple[str, ...] = ()
    skip_if_exists: tuple[str, ...] = ()
    tasks: tuple[str | tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class Schema:
    """Parsed schema: questions in evaluation order plus settings."""

    questions: tuple[Question, ...]
    settings: Settings = field(default_factory=Settings)
    path: Path | None = None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(q.name for q in self.questions)

    def get(self, name: str) -> Question | None:
        for q in self.questions:
            if q.name == name:
                return q
        return None


def find_schema_file(template_dir: str | Path) -> Path:
    root = Path(template_dir)
    if not root.is_dir():
        raise SchemaError(f"Template directory not found: {root}")
    for name in SCHEMA_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    raise SchemaError(f"No {' or '.join(SCHEMA_FILENAMES)} found in {root}")


def load_schema(template_dir: str | Path, env: Environment) -> Schema:
    """
    Read and parse the schema file of the template at `template_dir`.
    """
    path = find_schema_file(template_dir)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise SchemaError(f"Invalid YAML in {path}: {e}") from e
    schema = parse_schema(data, env)
    return Schema(questions=schema.questions, settings=schema.settings, path=path)


def parse_schema(data: Any, env: Environment) -> Schema:
    if not isinstance(data, dict):
        raise SchemaError("Schema must be a mapping/object at the top level.")

    settings = _parse_settings({k: v for k, v in data.items() if str(k).startswith("_")})
    questions = [
        _parse_question(str(name), raw)
        for name, raw in data.items()
        if not str(name).startswith("_")
    ]
    ordered = order_questions(questions, env)
    return Schema(questions=tuple(ordered), settings=settings)


def order_questions(questions: list[Question], env: Environment) -> list[Question]:
    """
    Return `questions` in a dependency-respecting order, keeping declaration
    order wherever the dependencies allow it.

    Raises SchemaError for references to undeclared names and for cycles.
    """
    declared = {q.name for q in questions}
    deps: dict[str, set[str]] = {}
    for q in questions:
        try:
            refs = q.references(env)
        except TemplateSyntaxError as e:
            raise SchemaError(f"Question '{q.name}': invalid expression: {e.message}") from e
        unknown = sorted(refs - declared)
        if unknown:
            raise SchemaError(
                f"Question '{q.name}' references undeclared name(s): {', '.join(unknown)}"
            )
        deps[q.name] = refs

    ordered: list[Question] = []
    done: set[str] = set()
    remaining = list(questions)
    while remaining:
        for q in remaining:
            if deps[q.name] <= done:
                ordered.append(q)
                done.add(q.name)
                remaining.remove(q)
                break
        else:
            stuck = ", ".join(q.name for q in remaining)
            raise SchemaError(f"Cyclic dependency among questions: {stuck}")
    return ordered


def _infer_kind(value: Any) -> str:
    # bool first: bool is a subclass of int.
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    return "str"


def _parse_choices(name: str, raw: Any) -> tuple[tuple[str, Any], ...] | None:
    if raw is None:
        return None
    if isinstance(raw, dict):
        pairs = tuple((str(label), value) for label, value in raw.items())
    elif isinstance(raw, list):
        pairs = tuple((str(value), value) for value in raw)
    else:
        raise SchemaError(f"Question '{name}': `choices` must be a list or mapping.")
    if not pairs:
        raise SchemaError(f"Question '{name}': `choices` must not be empty.")
    return pairs


def _parse_question(name: str, raw: Any) -> Question:
    if not name.isidentifier():
        raise SchemaError(f"Question name '{name}' is not a valid identifier.")

    if not isinstance(raw, dict):
        # Short form: the value is the default.
        return Question(name=name, kind=_infer_kind(raw), default=raw)

    unknown = sorted(set(raw) - _QUESTION_KEYS)
    if unknown:
        raise SchemaError(f"Question '{name}': unknown key(s): {', '.join(map(str, unknown))}")

    default = raw.get("default")
    kind_raw = raw.get("type")
    if kind_raw is None:
        kind = _infer_kind(default) if default is not None else "str"
    else:
        kind = _KIND_ALIASES.get(str(kind_raw).strip().lower(), "")
        if not kind:
            raise SchemaError(
                f"Question '{name}': unsupported type '{kind_raw}' (expected one of {', '.join(KINDS)})"
            )

    validator = raw.get("validator")
    if validator is not None and not isinstance(validator, str):
        raise SchemaError(f"Question '{name}': `validator` must be a template string.")

    when = raw.get("when", True)
    if not isinstance(when, (bool, str)):
        raise SchemaError(f"Question '{name}': `when` must be a boolean or an expression.")

    return Question(
        name=name,
        kind=kind,
        default=default,
        help=str(raw.get("help") or "").strip(),
        choices=_parse_choices(name, raw.get("choices")),
        validator=validator,
        when=when,
    )


def _as_patterns(key: str, raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return (raw,)
    if not isinstance(raw, list) or not all(isinstance(p, str) for p in raw):
        raise SchemaError(f"`{key}` must be a list of glob patterns.")
    return tuple(raw)


def _parse_tasks(raw: Any) -> tuple[str | tuple[str, ...], ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise SchemaError("`_tasks` must be a list of commands.")
    tasks: list[str | tuple[str, ...]] = []
    for item in raw:
        if isinstance(item, str):
            tasks.append(item)
        elif isinstance(item, list) and item and all(isinstance(a, str) for a in item):
            tasks.append(tuple(item))
        else:
            raise SchemaError(f"Invalid task {item!r}: expected a string or a list of strings.")
    return tuple(tasks)


def _parse_settings(raw: dict[str, Any]) -> Settings:
    known = {
        "_subdirectory",
        "_templates_suffix",
        "_answers_file",
        "_exclude",
        "_skip_if_exists",
        "_tasks",
    }
    unknown = sorted(set(raw) - known)
    if unknown:
        raise SchemaError(f"Unknown setting(s): {', '.join(unknown)}")

    subdirectory = str(raw.get("_subdirectory") or "").strip().strip("/")
    if ".." in Path(subdirectory).parts:
        raise SchemaError("`_subdirectory` must stay inside the template directory.")

    suffix = raw.get("_templates_suffix", DEFAULT_TEMPLATES_SUFFIX)
    suffix = "" if suffix is None else str(suffix)

    answers_file = str(raw.get("_answers_file") or DEFAULT_ANSWERS_FILE).strip()

    return Settings(
        subdirectory=subdirectory,
        templates_suffix=suffix,
        answers_file=answers_file,
        exclude=_as_patterns("_exclude", raw.get("_exclude")),
        skip_if_exists=_as_patterns("_skip_if_exists", raw.get("_skip_if_exists")),
        tasks=_parse_tasks(raw.get("_tasks")),
    )
