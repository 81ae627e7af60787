from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, HeuristicsConfig, IngestConfig

"""Configuration loading.

The YAML file is optional: a missing file means every default applies. When it
exists it must parse and validate against config_schema.json (bundled next to
this module); otherwise ConfigError is raised. Keys left out keep their
defaults.
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "config_from_dict",
]

DEFAULT_CONFIG_PATH = Path("config") / "sheetsql.yml"
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Raise ConfigError when the schema is unusable or `data` violates it."""
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        raise ConfigError(f"config validation failed at '{where}': {e.message}") from e


def config_from_dict(data: dict[str, Any]) -> IngestConfig:
    _validate_config_schema(data)
    defaults = IngestConfig()
    return IngestConfig(
        heuristics=HeuristicsConfig(**(data.get("heuristics") or {})),
        database=DatabaseConfig(**(data.get("database") or {})),
        error_log_dir=data.get("error_log_dir", defaults.error_log_dir),
        session_ttl_seconds=data.get("session_ttl_seconds", defaults.session_ttl_seconds),
    )


def load_config(path: Path | None = None) -> IngestConfig:
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        return IngestConfig()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return config_from_dict(data)
