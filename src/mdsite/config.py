"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"


class Settings(BaseModel):
    app_name:      str = "mdsite"
    site_title:    str = Field(default="",        description="Site name shown in page titles and headers")
    parser_config: str = Field(default="gfm-like", description="MarkdownIt parser preset name")
    max_nesting:   int = Field(default=6,  ge=1, le=6, description="Deepest heading level that opens a section")
    workers:       int = Field(default=4,  ge=1, description="Parse/render worker threads")
    task_timeout:  float = Field(default=30.0, gt=0, description="Per-document parse/render time limit in seconds")
    include_drafts: bool = Field(default=False, description="Publish documents marked draft: true")
    on_state_mismatch: str = Field(default="rebuild", pattern="^(rebuild|fail)$",
                                   description="Stale build state: rebuild everything or fail the run")
    index_coupling: bool = Field(default=False,
                                 description="Re-render series members when their series page changes")
    templates_dir: Optional[str] = Field(default=None, description="Directory overriding the packaged templates")
    check_links:   bool = Field(default=False, description="Validate internal links and local images")
    log_level:     str = Field(default="WARNING", description="Root log level for the CLI")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDSITE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e

    for name in Settings.model_fields:
        if val := os.getenv(f"MDSITE_{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
