"""Runtime configuration for the onboarding engine.

Provides centralized configuration for definition and state locations and
for definition caching. Environment variables take precedence over YAML config.

Usage:
    from onboarding.config.runtime_config import get_settings

    settings = get_settings()
    settings.data_dir         # root holding processes/ and tasks/
    settings.state_dir        # one JSON record per subject
    settings.cache_enabled    # reuse compiled processes between requests

Environment variables:
    ONBOARDING_ENV            "development" | "production" (selects the profile)
    ONBOARDING_DATA_DIR       overrides data_dir
    ONBOARDING_STATE_DIR      overrides state_dir
    ONBOARDING_CACHE_ENABLED  "1"/"true" or "0"/"false", overrides the profile
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "runtime.yaml"
_PACKAGE_ROOT = Path(__file__).parent.parent
_cached_config: Optional[Dict[str, Any]] = None

VALID_ENVIRONMENTS = ("development", "production")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class RuntimeSettings:
    """Resolved runtime settings.

    Attributes:
        environment: Active profile name.
        data_dir: Root directory holding processes/ and tasks/.
        state_dir: Directory holding per-subject state records.
        cache_enabled: Whether compiled processes are cached.
        invalidate_on_mtime: Whether a changed definition file drops the cache.
    """
    environment: str
    data_dir: Path
    state_dir: Path
    cache_enabled: bool
    invalidate_on_mtime: bool


def _load_config() -> Dict[str, Any]:
    """Load runtime.yaml configuration, with caching."""
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH, encoding="utf-8") as f:
            _cached_config = yaml.safe_load(f) or _default_config()
    else:
        _cached_config = _default_config()

    return _cached_config


def _default_config() -> Dict[str, Any]:
    """Return default configuration if runtime.yaml doesn't exist."""
    return {
        "version": "1.0",
        "paths": {
            "data_dir": "data",
            "state_dir": "~/.onboarding/subject_state",
        },
        "profiles": {
            "development": {"cache_enabled": False, "invalidate_on_mtime": False},
            "production": {"cache_enabled": True, "invalidate_on_mtime": True},
        },
    }


def reset_config() -> None:
    """Reset cached config (for testing)."""
    global _cached_config
    _cached_config = None


def _resolve_path(value: str) -> Path:
    """Relative paths in runtime.yaml are relative to the package root."""
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = _PACKAGE_ROOT / path
    return path


def _parse_bool(name: str, value: str, fallback: bool) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning("Invalid %s value '%s'. Falling back to %s.", name, value, fallback)
    return fallback


def get_environment() -> str:
    """Get the active profile name.

    Precedence: ONBOARDING_ENV, then `environment` in runtime.yaml,
    then "development".
    """
    value = os.environ.get("ONBOARDING_ENV") or _load_config().get("environment")
    if not value:
        return "development"
    value = value.lower()
    if value not in VALID_ENVIRONMENTS:
        logger.warning(
            "Unknown environment '%s' (valid: %s). Falling back to 'development'.",
            value,
            ", ".join(VALID_ENVIRONMENTS),
        )
        return "development"
    return value


def get_settings() -> RuntimeSettings:
    """Resolve settings from environment variables and runtime.yaml."""
    config = _load_config()
    defaults = _default_config()
    environment = get_environment()

    paths = {**defaults["paths"], **(config.get("paths") or {})}
    data_dir_value = os.environ.get("ONBOARDING_DATA_DIR") or paths["data_dir"]
    state_dir_value = os.environ.get("ONBOARDING_STATE_DIR") or paths["state_dir"]

    profiles = config.get("profiles") or defaults["profiles"]
    profile = profiles.get(environment) or defaults["profiles"][environment]

    cache_enabled = bool(profile.get("cache_enabled", False))
    cache_env = os.environ.get("ONBOARDING_CACHE_ENABLED")
    if cache_env is not None:
        cache_enabled = _parse_bool("ONBOARDING_CACHE_ENABLED", cache_env, cache_enabled)

    return RuntimeSettings(
        environment=environment,
        data_dir=_resolve_path(data_dir_value),
        state_dir=_resolve_path(state_dir_value),
        cache_enabled=cache_enabled,
        invalidate_on_mtime=bool(profile.get("invalidate_on_mtime", False)),
    )
