from __future__ import annotations

import io

import pytest

from blueprint.prompts import AnswersAborted, ConsolePrompter
from blueprint.schema import Question


def _prompter(replies, stream):
    it = iter(replies)
    prompts: list[str] = []

    def fake_input(prompt: str) -> str:
        prompts.append(prompt)
        return next(it)

    return ConsolePrompter(input_func=fake_input, stream=stream), prompts


def test_prompt_shows_help_and_default():
    stream = io.StringIO()
    prompter, prompts = _prompter(["  value  "], stream)
    reply = prompter.ask(Question(name="name", help="Project name"), "demo")
    assert reply == "value"
    assert prompts == ["Project name [demo]: "]


def test_bool_prompt_hint():
    prompter, prompts = _prompter([""], io.StringIO())
    prompter.ask(Question(name="docs", kind="bool"), False)
    assert prompts == ["docs [y/N]: "]


def test_numbered_choice_maps_to_label():
    stream = io.StringIO()
    prompter, _ = _prompter(["2"], stream)
    q = Question(name="license", choices=(("MIT", "MIT"), ("No license", "None")))
    assert prompter.ask(q, "MIT") == "No license"
    assert "*" in stream.getvalue().splitlines()[0]


def test_eof_aborts():
    def raise_eof(prompt: str) -> str:
        raise EOFError

    prompter = ConsolePrompter(input_func=raise_eof, stream=io.StringIO())
    with pytest.raises(AnswersAborted, match="name"):
        prompter.ask(Question(name="name"), None)


def test_reject_writes_reason():
    stream = io.StringIO()
    ConsolePrompter(stream=stream).reject(Question(name="x"), "bad value")
    assert "bad value" in stream.getvalue()
