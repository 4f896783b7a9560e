"""Unit tests for config.py"""

import pytest
from pydantic import ValidationError

from mdsite.config import load_config


def test_load_config_defaults(tmp_path, monkeypatch):
    """Settings defaults are used when no config.yaml, env var, or CLI override exists."""
    monkeypatch.chdir(tmp_path)
    settings = load_config()
    assert settings.workers == 4
    assert settings.on_state_mismatch == "rebuild"
    assert settings.index_coupling is False
    assert settings.include_drafts is False


def test_load_config_reads_config_yaml(tmp_path, monkeypatch):
    """config.yaml values are applied to settings."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("site_title: My Notes\nworkers: 2\n")
    settings = load_config()
    assert settings.site_title == "My Notes"
    assert settings.workers == 2


def test_load_config_env_overrides_config_yaml(tmp_path, monkeypatch):
    """MDSITE_WORKERS takes precedence over config.yaml workers."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("workers: 2\n")
    monkeypatch.setenv("MDSITE_WORKERS", "8")
    settings = load_config()
    assert settings.workers == 8


def test_load_config_cli_overrides_env(tmp_path, monkeypatch):
    """A non-None CLI override beats the MDSITE_WORKERS env var."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MDSITE_WORKERS", "8")
    settings = load_config(overrides={"workers": 1})
    assert settings.workers == 1


def test_load_config_none_override_ignored(tmp_path, monkeypatch):
    """None-valued overrides leave the lower-precedence value in place."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MDSITE_WORKERS", "3")
    settings = load_config(overrides={"workers": None})
    assert settings.workers == 3


def test_load_config_invalid_yaml(tmp_path, monkeypatch):
    """load_config raises ValueError when config.yaml contains invalid YAML."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yaml").write_text("key: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid config.yaml"):
        load_config()


# --- generalized env var pattern ---

def test_load_config_env_max_nesting(tmp_path, monkeypatch):
    """MDSITE_MAX_NESTING env var is coerced to int and applied to settings."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MDSITE_MAX_NESTING", "3")
    settings = load_config()
    assert settings.max_nesting == 3


def test_load_config_env_bool(tmp_path, monkeypatch):
    """MDSITE_INDEX_COUPLING env var is coerced to bool."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MDSITE_INDEX_COUPLING", "true")
    settings = load_config()
    assert settings.index_coupling is True


def test_load_config_rejects_unknown_mismatch_policy(tmp_path, monkeypatch):
    """on_state_mismatch accepts only 'rebuild' or 'fail'."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MDSITE_ON_STATE_MISMATCH", "ignore")
    with pytest.raises(ValidationError):
        load_config()


def test_load_config_rejects_out_of_range_nesting(tmp_path, monkeypatch):
    """max_nesting must be between 1 and 6."""
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValidationError):
        load_config(overrides={"max_nesting": 7})
