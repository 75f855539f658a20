"""Configuration loading utilities."""

from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR = Path(__file__).parent


def load_yaml_config(filename: str | Path) -> dict[str, Any]:
    """Load a YAML mapping, relative to the config/ directory unless absolute.

    An empty file loads as an empty dict.
    """
    config_path = CONFIG_DIR / filename
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a mapping, got {type(data).__name__}")
    return data
