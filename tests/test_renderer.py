from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

import pytest

from blueprint.paths import PlanEntry, RenderMode
from blueprint.renderer import RenderError, render_plan


@pytest.fixture()
def source(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    src.mkdir()
    (src / "README.md.jinja").write_text("# {{ name }}\n", encoding="utf-8")
    (src / "logo.bin").write_bytes(b"\x89PNG\x00\xff")
    script = src / "run.sh"
    script.write_text("#!/bin/sh\necho {{ not rendered }}\n", encoding="utf-8")
    script.chmod(0o755)
    return src


def _plan(src: Path) -> list[PlanEntry]:
    return [
        PlanEntry(PurePosixPath("README.md"), src / "README.md.jinja", RenderMode.SUBSTITUTE),
        PlanEntry(PurePosixPath("assets"), src, RenderMode.DIRECTORY),
        PlanEntry(PurePosixPath("assets/logo.bin"), src / "logo.bin", RenderMode.VERBATIM),
        PlanEntry(PurePosixPath("run.sh"), src / "run.sh", RenderMode.VERBATIM),
    ]


def test_render_and_copy(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    result = render_plan(_plan(source), out, {"name": "Demo"}, env)

    assert (out / "README.md").read_text(encoding="utf-8") == "# Demo\n"
    assert (out / "assets" / "logo.bin").read_bytes() == b"\x89PNG\x00\xff"
    assert (out / "run.sh").read_text(encoding="utf-8") == "#!/bin/sh\necho {{ not rendered }}\n"
    assert os.access(out / "run.sh", os.X_OK)
    assert (result.rendered_files, result.copied_files, result.directories) == (1, 2, 1)


def test_existing_directory_is_not_an_error(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    (out / "assets").mkdir(parents=True)
    render_plan(_plan(source), out, {"name": "Demo"}, env)
    assert (out / "assets" / "logo.bin").exists()


def test_missing_binding_writes_nothing(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    with pytest.raises(RenderError) as info:
        render_plan(_plan(source), out, {}, env)
    assert info.value.source == source / "README.md.jinja"
    assert "name" in info.value.reason
    assert not out.exists()


def test_syntax_error_is_a_render_error(tmp_path: Path, env):
    src = tmp_path / "bad.jinja"
    src.write_text("{% if %}", encoding="utf-8")
    plan = [PlanEntry(PurePosixPath("bad"), src, RenderMode.SUBSTITUTE)]
    with pytest.raises(RenderError):
        render_plan(plan, tmp_path / "out", {}, env)


def test_copy_mode_overwrites(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    out.mkdir()
    (out / "README.md").write_text("local edits", encoding="utf-8")
    render_plan(_plan(source), out, {"name": "Demo"}, env)
    assert (out / "README.md").read_text(encoding="utf-8") == "# Demo\n"


def test_skip_if_exists(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    out.mkdir()
    (out / "README.md").write_text("keep me", encoding="utf-8")
    result = render_plan(_plan(source), out, {"name": "Demo"}, env, skip_if_exists=("README.md",))
    assert (out / "README.md").read_text(encoding="utf-8") == "keep me"
    assert result.skipped_files == 1


def test_update_leaves_identical_files_untouched(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    render_plan(_plan(source), out, {"name": "Demo"}, env)
    readme = out / "README.md"
    os.utime(readme, (1_000_000, 1_000_000))

    result = render_plan(_plan(source), out, {"name": "Demo"}, env, update=True)

    assert readme.stat().st_mtime == 1_000_000
    assert result.unchanged_files == 3
    assert result.conflicts == []


def test_update_flags_conflicts(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    render_plan(_plan(source), out, {"name": "Demo"}, env)
    (out / "README.md").write_text("local edits", encoding="utf-8")

    result = render_plan(_plan(source), out, {"name": "Demo"}, env, update=True)
    assert result.conflicts == [PurePosixPath("README.md")]
    assert (out / "README.md").read_text(encoding="utf-8") == "local edits"

    result = render_plan(_plan(source), out, {"name": "Demo"}, env, update=True, conflict="overwrite")
    assert result.conflicts == [PurePosixPath("README.md")]
    assert (out / "README.md").read_text(encoding="utf-8") == "# Demo\n"


def test_update_writes_new_files(tmp_path: Path, source: Path, env):
    out = tmp_path / "out"
    result = render_plan(_plan(source), out, {"name": "Demo"}, env, update=True)
    assert result.rendered_files == 1
    assert (out / "README.md").exists()


def test_unknown_conflict_policy(tmp_path: Path, env):
    with pytest.raises(ValueError):
        render_plan([], tmp_path, {}, env, conflict="merge")
