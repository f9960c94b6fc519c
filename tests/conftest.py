from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from blueprint.environment import make_environment  # noqa: E402


@pytest.fixture()
def env():
    return make_environment()


@pytest.fixture()
def make_template(tmp_path: Path) -> Callable[..., Path]:
    """
    Build a template directory from a schema mapping and `{relative_path: content}`.
    A content of None creates a directory.
    """

    def _make(schema: dict[str, Any], files: dict[str, str | bytes | None], name: str = "tpl") -> Path:
        root = tmp_path / name
        root.mkdir()
        (root / "blueprint.yml").write_text(yaml.safe_dump(schema, sort_keys=False), encoding="utf-8")
        for relative, content in files.items():
            path = root / relative
            if content is None:
                path.mkdir(parents=True, exist_ok=True)
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root

    return _make
