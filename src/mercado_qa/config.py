"""CLI configuration management.

Handles persistent configuration stored in ~/.mercado-qa/config.yaml.
Supports environment variable overrides and CLI flag precedence.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from .data import DEFAULT_LOCALE
from .shared.logging import get_logger
from .shared.paths import CONFIG_FILE
from .suites import DEFAULT_MISSING_ID

logger = get_logger(__name__)

DEFAULT_OUTPUT_FORMAT = "table"

# Key -> (environment variable, converter)
SETTINGS: dict[str, tuple[str, Any]] = {
    "base_url": ("MERCADO_QA_BASE_URL", str),
    "timeout": ("MERCADO_QA_TIMEOUT", float),
    "missing_id": ("MERCADO_QA_MISSING_ID", int),
    "faker_locale": ("MERCADO_QA_FAKER_LOCALE", str),
    "output_format": ("MERCADO_QA_OUTPUT_FORMAT", str),
}


@dataclass
class MercadoQAConfig:
    """Runtime configuration."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    missing_id: int = DEFAULT_MISSING_ID
    faker_locale: str = DEFAULT_LOCALE
    output_format: str = DEFAULT_OUTPUT_FORMAT

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def override(self, key: str, value: Any) -> None:
        """Apply a CLI flag value (highest precedence)."""
        if value is None:
            return
        setattr(self, key, SETTINGS[key][1](value))
        self._sources[key] = "flag"

    def values(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in SETTINGS}


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        Path to ~/.mercado-qa/config.yaml
    """
    return CONFIG_FILE


def _read_config_file(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("config_file_unreadable", path=str(config_path), error=str(e))
        return {}
    if not isinstance(data, dict):
        logger.warning("config_file_not_a_mapping", path=str(config_path))
        return {}
    return data


def load_config() -> MercadoQAConfig:
    """Load configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.mercado-qa/config.yaml)
    3. Defaults

    CLI flags are applied afterwards with MercadoQAConfig.override().

    Returns:
        MercadoQAConfig with values and sources
    """
    config = MercadoQAConfig()
    sources: dict[str, str] = {key: "default" for key in SETTINGS}

    file_config = _read_config_file(get_config_path())
    for key, (env_var, convert) in SETTINGS.items():
        if key in file_config:
            try:
                setattr(config, key, convert(file_config[key]))
                sources[key] = "config file"
            except (TypeError, ValueError):
                logger.warning("config_value_invalid", key=key, value=file_config[key])

        raw = os.environ.get(env_var)
        if raw:
            try:
                setattr(config, key, convert(raw))
                sources[key] = "environment"
            except ValueError:
                logger.warning("env_value_invalid", variable=env_var, value=raw)

    config._sources = sources
    return config


def save_config(key: str, value: Any) -> None:
    """Save a config value to the config file.

    Args:
        key: Config key (see SETTINGS)
        value: Value to save

    Raises:
        KeyError: If the key is not a known setting
        ValueError: If the value cannot be converted
    """
    if key not in SETTINGS:
        raise KeyError(f"Unknown config key: {key}")
    converted = SETTINGS[key][1](value)

    config_path = get_config_path()
    existing = _read_config_file(config_path)
    existing[key] = converted

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(existing, f, default_flow_style=False)


def unset_config(key: str) -> bool:
    """Remove a config value from the config file.

    Args:
        key: Config key to remove

    Returns:
        True if key was removed, False if not found
    """
    config_path = get_config_path()
    existing = _read_config_file(config_path)
    if key not in existing:
        return False

    del existing[key]

    with open(config_path, "w") as f:
        yaml.dump(existing, f, default_flow_style=False)

    return True
