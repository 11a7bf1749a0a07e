import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .errors import ConfigError
from .invariants import check_config_invariants
from .models import FactoryConfig

load_dotenv()

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SCAN_INTERVAL = 2.0


def get_log_level() -> int:
    """
    Return the logging level from REPLENISHER_LOG_LEVEL.

    Raises:
        RuntimeError: if the value is not a known level name.
    """
    name = os.environ.get("REPLENISHER_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise RuntimeError(
            f"REPLENISHER_LOG_LEVEL={name!r} is not a valid level; use DEBUG, INFO, WARNING or ERROR."
        )
    return level


def get_scan_interval() -> float:
    """
    Return the seconds between ticks from REPLENISHER_SCAN_INTERVAL.

    Raises:
        RuntimeError: if the value is not a positive number.
    """
    raw = os.environ.get("REPLENISHER_SCAN_INTERVAL", "").strip()
    if not raw:
        return DEFAULT_SCAN_INTERVAL
    try:
        interval = float(raw)
    except ValueError:
        raise RuntimeError(f"REPLENISHER_SCAN_INTERVAL={raw!r} is not a number.")
    if interval <= 0:
        raise RuntimeError("REPLENISHER_SCAN_INTERVAL must be > 0.")
    return interval


def get_config_path() -> Optional[str]:
    """Return REPLENISHER_CONFIG, or None when unset."""
    path = os.environ.get("REPLENISHER_CONFIG", "").strip()
    return path or None


def load_factory_config(path: str | Path) -> FactoryConfig:
    """
    Load and validate a factory configuration from a YAML file.

    Raises:
        ConfigError: CONFIG_NOT_FOUND, CONFIG_PARSE_ERROR or CONFIG_INVALID
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError("CONFIG_NOT_FOUND", f"Config file not found: {path}", {"path": str(path)})

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError("CONFIG_PARSE_ERROR", f"Could not parse {path}", {"error": str(e)}) from e

    if not isinstance(raw, dict):
        raise ConfigError("CONFIG_INVALID", "Config root must be a mapping", {"path": str(path)})

    return parse_factory_config(raw)


def parse_factory_config(raw: dict) -> FactoryConfig:
    """
    Validate a raw config mapping.

    Material and machine type ids default to their mapping key when omitted.

    Raises:
        ConfigError: CONFIG_INVALID with the validation errors or invariant violations
    """
    distribution = raw.get("distribution")
    if isinstance(distribution, dict):
        for section in ("materials", "machine_types"):
            entries = distribution.get(section) or {}
            for key, entry in entries.items():
                if isinstance(entry, dict):
                    entry.setdefault("id", key)

    try:
        config = FactoryConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(
            "CONFIG_INVALID",
            "Factory config failed validation",
            {"errors": e.errors(include_url=False)},
        ) from e

    violations = check_config_invariants(config)
    if violations:
        raise ConfigError(
            "CONFIG_INVALID",
            f"Factory config has {len(violations)} invariant violation(s)",
            {"violations": violations},
        )
    return config
