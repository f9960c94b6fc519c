"""Shared helpers for driving runs in tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from blueprint.prompts import AnswersAborted
from blueprint.schema import Question

ROOT = Path(__file__).resolve().parents[2]
SAMPLE_TEMPLATE = ROOT / "templates" / "python-package"

__all__ = ["SAMPLE_TEMPLATE", "ScriptedPrompter", "tree"]


class ScriptedPrompter:
    """Replays canned replies and records what was asked."""

    def __init__(self, replies: dict[str, list[str]] | None = None) -> None:
        self.replies = {k: list(v) for k, v in (replies or {}).items()}
        self.asked: list[tuple[str, Any]] = []
        self.rejections: list[tuple[str, str]] = []

    def ask(self, question: Question, default: Any) -> str:
        self.asked.append((question.name, default))
        queue = self.replies.get(question.name)
        if queue is None:
            return ""
        if not queue:
            raise AnswersAborted(f"no more replies for {question.name}")
        return queue.pop(0)

    def reject(self, question: Question, reason: str) -> None:
        self.rejections.append((question.name, reason))

    @property
    def asked_names(self) -> list[str]:
        return [name for name, _ in self.asked]


def tree(root: Path) -> dict[str, bytes]:
    """Relative posix path -> bytes for every file under `root`."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }
