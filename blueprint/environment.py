"""
environment.py

Responsibility: Own the Jinja2 environment shared by every stage of a run.

Answers, guards, filenames, file contents and task commands are all rendered
with the same settings:
- `StrictUndefined`, so a reference to a missing binding is always an error
- no autoescaping (we render source code and config files, not HTML)
- trailing newlines kept, so rendered files match their sources byte-for-byte
  outside of the substituted parts
"""

from __future__ import annotations

from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined, meta


def make_environment() -> Environment:
    """
    Build a fresh environment. Each run owns its own instance.
    """
    return Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def is_template(value: Any) -> bool:
    return isinstance(value, str) and ("{{" in value or "{%" in value or "{#" in value)


def render_string(env: Environment, text: str, bindings: Mapping[str, Any]) -> str:
    """
    Render `text` with `bindings`. Jinja2 errors propagate to the caller, which
    knows which question/path/command the text belongs to.
    """
    if not is_template(text):
        return text
    return env.from_string(text).render(**bindings)


def evaluate(env: Environment, expression: Any, bindings: Mapping[str, Any]) -> bool:
    """
    Evaluate a condition written either as a bare expression (`use_docs and
    license != 'None'`) or as a template (`{{ use_docs }}`).

    Non-string values (YAML booleans) are taken at their truth value.
    """
    if not isinstance(expression, str):
        return bool(expression)
    if is_template(expression):
        rendered = render_string(env, expression, bindings).strip()
        return rendered.lower() not in {"", "false", "no", "0", "none", "off"}
    compiled = env.compile_expression(expression, undefined_to_none=False)
    # StrictUndefined raises on bool(), which is what reports a missing name.
    return bool(compiled(**bindings))


def referenced_names(env: Environment, value: Any, *, expression: bool = False) -> set[str]:
    """
    Return the top-level names `value` reads. Strings are templates; with
    `expression=True` a string without template markers is read as a bare
    expression instead. Other values reference nothing.
    """
    if not isinstance(value, str):
        return set()
    if is_template(value):
        names = set(meta.find_undeclared_variables(env.parse(value)))
    elif expression:
        names = _expression_names(env, value)
    else:
        return set()
    # Jinja2 globals such as `range` are not answers.
    return names - set(env.globals)


def _expression_names(env: Environment, expression: str) -> set[str]:
    # Wrap the bare expression so Jinja2's own analysis does the work.
    ast = env.parse("{{ (" + expression + ") }}")
    return set(meta.find_undeclared_variables(ast))
