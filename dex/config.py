"""
Configuration loading and validation for the DEX reader.
"""

import dataclasses
import os
from pathlib import Path
from typing import Any, Dict, Optional, TypeVar, Union

import yaml
from pydantic import ValidationError

from dexter_kupo.config_schema import DexterSettings
from dexter_kupo.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = "configs/dexter.yaml"
KUPO_URL_ENV = "KUPO_URL"

S = TypeVar("S")


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse a YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML in {config_path}: {e}") from e

    if config_dict is None:
        return {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")

    return config_dict


def build_settings(config_dict: Dict[str, Any]) -> DexterSettings:
    """
    Validate a raw config dictionary; `KUPO_URL` in the environment wins over the file.

    Raises:
        ConfigurationError: If validation fails
    """
    merged = dict(config_dict)
    env_url = os.environ.get(KUPO_URL_ENV)
    if env_url:
        merged["kupo_url"] = env_url

    try:
        return DexterSettings(**merged)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            details={"errors": e.errors(include_url=False)},
        ) from e


def load_config(config_path: Optional[Union[str, Path]] = None) -> DexterSettings:
    """
    Load and validate config from a YAML file.

    Args:
        config_path: Path to the YAML file; None reads settings from the environment only

    Returns:
        Validated DexterSettings instance

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    config_dict = load_yaml_config(config_path) if config_path is not None else {}
    return build_settings(config_dict)


def apply_overrides(settings: S, overrides: Optional[Dict[str, Any]]) -> S:
    """
    Return a copy of a frozen protocol settings dataclass with overrides applied.

    List values are converted to tuples so the copy stays hashable.

    Raises:
        ConfigurationError: If an override names a field the dataclass lacks
    """
    if not overrides:
        return settings

    names = {f.name for f in dataclasses.fields(settings)}
    unknown = sorted(set(overrides) - names)
    if unknown:
        raise ConfigurationError(
            f"Unknown settings for {type(settings).__name__}: {', '.join(unknown)}"
        )

    changes = {
        key: tuple(value) if isinstance(value, list) else value
        for key, value in overrides.items()
    }
    return dataclasses.replace(settings, **changes)
