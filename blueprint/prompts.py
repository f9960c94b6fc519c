"""
prompts.py

Responsibility: Ask the user for question values.

This is the only place a run blocks on external input. The evaluator talks to
a `Prompter`; `ConsolePrompter` implements it over stdin/stderr, tests and
embedding tools supply their own.
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Protocol, TextIO

from blueprint.schema import Question


class AnswersAborted(RuntimeError):
    pass


class Prompter(Protocol):
    def ask(self, question: Question, default: Any) -> str:
        """
        Return the raw reply. An empty string accepts `default`.
        Raise AnswersAborted to stop the run.
        """
        ...

    def reject(self, question: Question, reason: str) -> None:
        ...


def format_default(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


class ConsolePrompter:
    def __init__(
        self,
        *,
        input_func: Callable[[str], str] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._input = input_func or input
        self._stream = stream if stream is not None else sys.stderr

    def ask(self, question: Question, default: Any) -> str:
        lines: list[str] = []
        if question.choices:
            for index, (label, value) in enumerate(question.choices, start=1):
                marker = "*" if value == default else " "
                lines.append(f" {marker} {index}) {label}")
        shown = format_default(default)
        if question.kind == "bool":
            shown = "Y/n" if default else "y/N"
        suffix = f" [{shown}]" if shown else ""
        if lines:
            self._stream.write("\n".join(lines) + "\n")
            self._stream.flush()

        try:
            reply = self._input(f"{question.prompt}{suffix}: ").strip()
        except (EOFError, KeyboardInterrupt) as e:
            raise AnswersAborted(f"Aborted while answering '{question.name}'") from e

        # Numbered choice replies map back to their label, except for integer
        # questions where the number is the value itself.
        if question.choices and question.kind != "int" and reply.isdigit():
            index = int(reply)
            if 1 <= index <= len(question.choices):
                return question.choices[index - 1][0]
        return reply

    def reject(self, question: Question, reason: str) -> None:
        self._stream.write(f"  ! {reason}\n")
        self._stream.flush()
