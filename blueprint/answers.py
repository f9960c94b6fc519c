"""
answers.py

Responsibility: Resolve every question of a schema into an immutable AnswerSet.

Resolution order per question (questions are visited in the schema's
dependency order):
1) an override supplied out-of-band wins; it is validated once and a rejection
   is fatal (no interactive recovery)
2) a question whose `when` is false gets its default, unprompted and
   unvalidated
3) otherwise the default (prior answer, else static default) is offered and
   the reply validated, re-asking on rejection until a valid value or abort

Expressions only ever see answers resolved before the current question.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from jinja2 import Environment

from blueprint.environment import evaluate, render_string
from blueprint.prompts import AnswersAborted, ConsolePrompter, Prompter
from blueprint.schema import Question, Schema, SchemaError

logger = logging.getLogger(__name__)

__all__ = [
    "AnswerSet",
    "AnswersAborted",
    "ValidationRejection",
    "coerce",
    "resolve_answers",
]

_TRUE = {"y", "yes", "true", "on", "1"}
_FALSE = {"n", "no", "false", "off", "0"}


class ValidationRejection(ValueError):
    """A candidate value was refused. Recoverable by asking again."""


class AnswerSet(Mapping[str, Any]):
    """Read-only mapping of question name to resolved value."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = MappingProxyType(dict(values))

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"AnswerSet({dict(self._values)!r})"

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


def _coerce_kind(kind: str, raw: Any) -> Any:
    if kind == "bool":
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValidationRejection(f"'{raw}' is not a yes/no value")
    if kind == "int":
        if isinstance(raw, bool):
            raise ValidationRejection(f"'{raw}' is not an integer")
        try:
            return int(str(raw).strip()) if not isinstance(raw, int) else raw
        except ValueError:
            raise ValidationRejection(f"'{raw}' is not an integer") from None
    if kind == "float":
        if isinstance(raw, bool):
            raise ValidationRejection(f"'{raw}' is not a number")
        try:
            return float(raw)
        except (TypeError, ValueError):
            raise ValidationRejection(f"'{raw}' is not a number") from None
    return raw if isinstance(raw, str) else str(raw)


def coerce(question: Question, raw: Any) -> Any:
    """
    Convert `raw` (a YAML value, a rendered default or a typed reply) to the
    question's kind. `None` passes through: it is the "no value" default.
    """
    if raw is None:
        return None
    if question.choices:
        for label, value in question.choices:
            if raw == value or (isinstance(raw, str) and raw == label):
                return value
        # Typed replies arrive as strings; compare after coercion too.
        try:
            converted = _coerce_kind(question.kind, raw)
        except ValidationRejection:
            converted = raw
        for _label, value in question.choices:
            if converted == value:
                return value
        allowed = ", ".join(label for label, _ in question.choices)
        raise ValidationRejection(f"'{raw}' is not one of: {allowed}")
    return _coerce_kind(question.kind, raw)


def _check(env: Environment, question: Question, value: Any, bindings: Mapping[str, Any]) -> None:
    if not question.validator:
        return
    try:
        reason = render_string(env, question.validator, {**bindings, question.name: value}).strip()
    except Exception as e:  # noqa: BLE001
        raise SchemaError(f"Question '{question.name}': validator failed: {e}") from e
    if reason:
        raise ValidationRejection(reason)


def _static_default(env: Environment, question: Question, bindings: Mapping[str, Any]) -> Any:
    default = question.default
    if default is None and question.kind == "bool":
        # Matches the `y/N` shown when the question is asked.
        return False
    if isinstance(default, str):
        try:
            default = render_string(env, default, bindings)
        except Exception as e:  # noqa: BLE001
            raise SchemaError(f"Question '{question.name}': default failed to render: {e}") from e
    try:
        return coerce(question, default)
    except ValidationRejection as e:
        raise SchemaError(f"Question '{question.name}': invalid default: {e}") from e


def _is_asked(env: Environment, question: Question, bindings: Mapping[str, Any]) -> bool:
    try:
        return evaluate(env, question.when, bindings)
    except Exception as e:  # noqa: BLE001
        raise SchemaError(f"Question '{question.name}': `when` failed: {e}") from e


def _from_override(env: Environment, question: Question, raw: Any, bindings: Mapping[str, Any]) -> Any:
    try:
        value = coerce(question, raw)
        _check(env, question, value, bindings)
    except ValidationRejection as e:
        raise SchemaError(f"Invalid value for '{question.name}': {e}") from e
    return value


def _interactive(
    env: Environment,
    question: Question,
    default: Any,
    bindings: Mapping[str, Any],
    prompter: Prompter,
) -> Any:
    while True:
        reply = prompter.ask(question, default)
        candidate = default if reply == "" else reply
        try:
            value = coerce(question, candidate)
            _check(env, question, value, bindings)
        except ValidationRejection as e:
            logger.debug("Rejected %r for %s: %s", candidate, question.name, e)
            prompter.reject(question, str(e))
            continue
        return value


def resolve_answers(
    schema: Schema,
    env: Environment,
    *,
    prior: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
    use_defaults: bool = False,
    prompter: Prompter | None = None,
) -> AnswerSet:
    """
    Resolve every question in `schema`. The result always covers every
    declared question name.

    Raises SchemaError for overrides naming unknown questions, for overrides
    or defaults that fail validation without a way to ask again, and for
    expressions that fail to evaluate. AnswersAborted propagates from the
    prompter.
    """
    prior = prior or {}
    overrides = dict(overrides or {})

    unknown = sorted(set(overrides) - set(schema.names))
    if unknown:
        raise SchemaError(f"Unknown question(s) in data: {', '.join(unknown)}")

    resolved: dict[str, Any] = {}
    for question in schema.questions:
        name = question.name

        if name in overrides:
            resolved[name] = _from_override(env, question, overrides[name], resolved)
            logger.debug("%s = %r (override)", name, resolved[name])
            continue

        if not _is_asked(env, question, resolved):
            resolved[name] = _static_default(env, question, resolved)
            logger.debug("%s = %r (skipped, `when` is false)", name, resolved[name])
            continue

        if name in prior:
            try:
                default = coerce(question, prior[name])
            except ValidationRejection:
                logger.warning("Ignoring stored answer for %s: %r no longer fits", name, prior[name])
                default = _static_default(env, question, resolved)
        else:
            default = _static_default(env, question, resolved)

        if use_defaults:
            try:
                _check(env, question, default, resolved)
            except ValidationRejection as e:
                raise SchemaError(f"Default for '{name}' is invalid: {e}") from e
            resolved[name] = default
            logger.debug("%s = %r (default)", name, default)
            continue

        if prompter is None:
            prompter = ConsolePrompter()
        resolved[name] = _interactive(env, question, default, resolved, prompter)

    return AnswerSet(resolved)
