from __future__ import annotations

import sys
from pathlib import Path

import pytest

from blueprint.hooks import HookFailure, run_tasks


def test_tasks_run_in_order_in_destination(tmp_path: Path, env):
    tasks = [
        [sys.executable, "-c", "open('log.txt', 'a').write('first\\n')"],
        [sys.executable, "-c", "open('log.txt', 'a').write('{{ name }}\\n')"],
    ]
    result = run_tasks(tasks, tmp_path, {"name": "second"}, env, trust=True)
    assert (tmp_path / "log.txt").read_text(encoding="utf-8") == "first\nsecond\n"
    assert len(result.ran) == 2
    assert result.skipped == []


def test_shell_string_task(tmp_path: Path, env):
    run_tasks(["echo {{ name }} > out.txt"], tmp_path, {"name": "demo"}, env, trust=True)
    assert (tmp_path / "out.txt").read_text(encoding="utf-8").strip() == "demo"


def test_untrusted_tasks_are_skipped(tmp_path: Path, env):
    tasks = [[sys.executable, "-c", "open('ran.txt', 'w').close()"]]
    result = run_tasks(tasks, tmp_path, {}, env, trust=False)
    assert result.ran == []
    assert len(result.skipped) == 1
    assert not (tmp_path / "ran.txt").exists()


def test_failure_stops_remaining_tasks(tmp_path: Path, env):
    tasks = [
        [sys.executable, "-c", "import sys; print('boom'); sys.exit(3)"],
        [sys.executable, "-c", "open('ran.txt', 'w').close()"],
    ]
    with pytest.raises(HookFailure) as info:
        run_tasks(tasks, tmp_path, {}, env, trust=True)
    assert info.value.returncode == 3
    assert "boom" in info.value.output
    assert "sys.exit(3)" in info.value.command
    assert not (tmp_path / "ran.txt").exists()


def test_missing_executable(tmp_path: Path, env):
    with pytest.raises(HookFailure, match="could not be started"):
        run_tasks([["definitely-not-a-real-command-xyz"]], tmp_path, {}, env, trust=True)


def test_no_tasks(tmp_path: Path, env):
    result = run_tasks([], tmp_path, {}, env, trust=False)
    assert result.ran == [] and result.skipped == []
