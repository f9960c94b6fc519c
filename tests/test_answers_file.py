from __future__ import annotations

from pathlib import Path

import pytest

from blueprint.answers_file import AnswersFileError, dump_answers, load_answers
from blueprint.schema import DEFAULT_ANSWERS_FILE


def test_dump_is_flat_and_sorted(tmp_path: Path):
    path = dump_answers(tmp_path, {"zeta": 1, "alpha": True}, src_path="/templates/demo")
    assert path == tmp_path / DEFAULT_ANSWERS_FILE
    lines = [line for line in path.read_text(encoding="utf-8").splitlines() if not line.startswith("#")]
    assert lines == ["_src_path: /templates/demo", "alpha: true", "zeta: 1"]


def test_load_separates_metadata(tmp_path: Path):
    dump_answers(tmp_path, {"name": "demo", "count": 3}, src_path="tpl")
    answers, metadata = load_answers(tmp_path)
    assert answers == {"name": "demo", "count": 3}
    assert metadata == {"_src_path": "tpl"}


def test_custom_filename(tmp_path: Path):
    dump_answers(tmp_path, {"a": "b"}, filename=".answers.yml")
    answers, metadata = load_answers(tmp_path, filename=".answers.yml")
    assert answers == {"a": "b"}
    assert metadata == {}


def test_missing_file(tmp_path: Path):
    with pytest.raises(AnswersFileError, match="does not exist"):
        load_answers(tmp_path)


def test_not_a_mapping(tmp_path: Path):
    (tmp_path / DEFAULT_ANSWERS_FILE).write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(AnswersFileError, match="mapping"):
        load_answers(tmp_path)
