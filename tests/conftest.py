"""Root test configuration: corpus-writing helpers and session-level cleanup of runtime artifacts"""

import os
import shutil
from pathlib import Path

import pytest


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_DIRS = [".mdsite", "site"]


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove state and output directories created during the test session."""
    yield
    for name in _CLEANUP_DIRS:
        p = _PROJECT_ROOT / name
        if p.exists():
            shutil.rmtree(p)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep MDSITE_* variables from the caller's shell out of every test."""
    for name in list(os.environ):
        if name.startswith("MDSITE_"):
            monkeypatch.delenv(name)


def _make_doc(title: str = None, body: str = "Body text.\n", **fields) -> str:
    lines = ["---"]
    if title is not None:
        lines.append(f"title: {title}")
    for key, value in fields.items():
        if isinstance(value, (list, tuple)):
            value = "[" + ", ".join(value) + "]"
        lines.append(f"{key}: {value}")
    lines.append("---")
    return "\n".join(lines) + "\n" + body


@pytest.fixture(name="make_doc")
def make_doc_fixture():
    """Markdown source builder: make_doc(title, body, **frontmatter_fields) -> str."""
    return _make_doc


@pytest.fixture(name="corpus")
def corpus_fixture(tmp_path):
    """Empty corpus root directory."""
    root = tmp_path / "corpus"
    root.mkdir()
    return root


@pytest.fixture(name="out")
def out_fixture(tmp_path):
    return tmp_path / "site"
