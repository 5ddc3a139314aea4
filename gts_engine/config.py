"""
Configuration management for the GTS engine.

Two layers:
- Settings: process settings from environment variables (GTS_ prefix)
- GtsConfig: the identifier-extraction document (gts.config.json)

Invariants:
    - All settings have sensible defaults for local use
    - An explicitly named config document that cannot be loaded is fatal
    - A missing default config document silently falls back to defaults
    - Field-name lists keep their order: earlier names win

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Never reorder the default field-name lists; extraction results depend on it
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "gts.config.json"

DEFAULT_ENTITY_ID_FIELDS = [
    "$id",
    "gtsId",
    "gtsIid",
    "gtsOid",
    "gtsI",
    "gts_id",
    "gts_oid",
    "gts_iid",
    "id",
]

DEFAULT_SCHEMA_ID_FIELDS = [
    "$schema",
    "gtsTid",
    "gtsType",
    "gtsT",
    "gts_t",
    "gts_tid",
    "gts_type",
    "type",
    "schema",
]


class GtsConfig(BaseModel):
    """Ordered candidate field names for identifier extraction.

    Attributes:
        entity_id_fields: Fields probed, in order, for an entity's own id
        schema_id_fields: Fields probed, in order, for its declared schema id
    """

    entity_id_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_ENTITY_ID_FIELDS))
    schema_id_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_SCHEMA_ID_FIELDS))

    model_config = {"frozen": True}

    @field_validator("entity_id_fields", "schema_id_fields", mode="before")
    @classmethod
    def _keep_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            kept = [v for v in value if isinstance(v, str)]
            if len(kept) != len(value):
                logger.warning(f"Ignoring {len(value) - len(kept)} non-string field name(s) in config")
            return kept
        return value

    @classmethod
    def from_dict(cls, data: dict) -> GtsConfig:
        """Create from a config document; missing keys fall back to defaults."""
        known = {k: data[k] for k in ("entity_id_fields", "schema_id_fields") if data.get(k) is not None}
        return cls(**known)


def load_gts_config(path: Optional[str] = None) -> GtsConfig:
    """Load the identifier-extraction config.

    Lookup order: explicit path, then ./gts.config.json, then defaults.

    Args:
        path: Optional explicit path to a JSON or YAML document

    Returns:
        Loaded GtsConfig

    Raises:
        ConfigError: If an explicit path cannot be read or parsed
    """
    if path:
        return _load_config_file(Path(path).expanduser())

    default_path = Path(DEFAULT_CONFIG_FILE)
    if default_path.is_file():
        return _load_config_file(default_path)

    logger.debug("No config document found, using default field lists")
    return GtsConfig()


def _load_config_file(path: Path) -> GtsConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config '{path}': {e}", path=str(path)) from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot parse config '{path}': {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config '{path}' must be a mapping", path=str(path))

    try:
        cfg = GtsConfig.from_dict(data)
    except ValueError as e:
        raise ConfigError(f"Invalid config '{path}': {e}", path=str(path)) from e

    logger.info(f"Loaded GTS config from {path}")
    return cfg


class Settings(BaseSettings):
    """Process settings.

    Attributes:
        paths: Comma-separated root directories or files to scan
        config: Path of the identifier-extraction config document
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (text, json)
        host: HTTP bind host
        port: HTTP bind port
        default_limit: Limit used by list/query when none is given
        max_limit: Upper bound applied to any requested limit
    """

    paths: str = Field(default="")
    config: Optional[str] = Field(default=None)

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    cors_origins: List[str] = Field(default=["*"])

    default_limit: int = Field(default=100, ge=1)
    max_limit: int = Field(default=1000, ge=1)

    model_config = {"env_prefix": "GTS_"}

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("text", "json"):
            raise ValueError(f"Invalid log format '{value}'. Must be one of: text, json")
        return value

    @property
    def root_paths(self) -> List[str]:
        """Configured roots as a list."""
        return [p.strip() for p in self.paths.replace(os.pathsep, ",").split(",") if p.strip()]

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Apply the default and the upper bound to a requested limit."""
        if limit is None or limit <= 0:
            return self.default_limit
        return min(limit, self.max_limit)

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "GTS engine configuration loaded",
            extra={
                "paths": self.root_paths,
                "config": self.config,
                "log_level": self.log_level,
                "host": self.host,
                "port": self.port,
            },
        )
