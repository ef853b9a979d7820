"""YAML configuration file for the modrank CLI."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modrank.exceptions import ConfigError


class Config(BaseModel):
    """Settings read from ``--config``. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    database: str = ""
    organization: str = ""
    repositories: list[str] = Field(default_factory=list)
    clone_path: str = Field(default="", alias="clonePath")


def load_config(path: str | Path) -> Config:
    """Load and validate a YAML config file.

    Raises ``ConfigError`` if the file cannot be read or does not match
    the expected shape.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must be a mapping")
    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid config {path}: {exc}") from exc
