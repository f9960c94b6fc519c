"""
answers_file.py

Responsibility: Persist the answers of a run in the destination, and read them back.

The file is a flat YAML mapping with one entry per question. Keys starting
with `_` are run metadata (currently only `_src_path`, the template used),
never answers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from blueprint.schema import DEFAULT_ANSWERS_FILE

SRC_PATH_KEY = "_src_path"

_HEADER = "# Answers recorded by blueprint. Edit with care; used as defaults by `blueprint update`.\n"


class AnswersFileError(ValueError):
    pass


def dump_answers(
    destination_dir: str | Path,
    answers: Mapping[str, Any],
    *,
    src_path: str | Path | None = None,
    filename: str = DEFAULT_ANSWERS_FILE,
) -> Path:
    data: dict[str, Any] = {}
    if src_path is not None:
        data[SRC_PATH_KEY] = str(src_path)
    data.update(sorted(answers.items()))

    path = Path(destination_dir) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    body = yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)
    path.write_text(_HEADER + body, encoding="utf-8", newline="\n")
    return path


def load_answers(
    destination_dir: str | Path,
    *,
    filename: str = DEFAULT_ANSWERS_FILE,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Return `(answers, metadata)` read from the answers file in `destination_dir`.
    """
    path = Path(destination_dir) / filename
    if not path.is_file():
        raise AnswersFileError(f"Answers file does not exist: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise AnswersFileError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise AnswersFileError(f"Answers file must be a mapping/object at the top level: {path}")

    answers = {str(k): v for k, v in data.items() if not str(k).startswith("_")}
    metadata = {str(k): v for k, v in data.items() if str(k).startswith("_")}
    return answers, metadata
