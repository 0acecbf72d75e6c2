"""
Configuration utilities for policymesh.
Provides configuration loading and value conversion helpers.
"""

import json
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict

import yaml


ENV_PREFIX = "POLICYMESH_"


def get_config_value(key: str, default: Any = None,
                     env_prefix: str = ENV_PREFIX) -> Any:
    """Get configuration value from environment or return default."""
    env_key = f"{env_prefix}{key.upper()}"
    return os.environ.get(env_key, default)


def parse_duration_string(duration_str: str) -> timedelta:
    """
    Parse duration string like '30s', '5m', '2h', '1d' into timedelta.
    A bare number is read as seconds.
    """
    if not isinstance(duration_str, str):
        raise ValueError("Duration must be a string")

    duration_str = duration_str.strip().lower()

    pattern = r'^(\d+(?:\.\d+)?)\s*([smhd]?)$'
    match = re.match(pattern, duration_str)

    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    value, unit = match.groups()
    value = float(value)

    if unit in ('', 's'):
        return timedelta(seconds=value)
    elif unit == 'm':
        return timedelta(minutes=value)
    elif unit == 'h':
        return timedelta(hours=value)
    else:
        return timedelta(days=value)


def load_config_file(file_path: str) -> Dict[str, Any]:
    """Load configuration from a file (JSON or YAML)."""
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    file_ext = Path(file_path).suffix.lower()

    with open(file_path, 'r', encoding='utf-8') as f:
        if file_ext == '.json':
            data = json.load(f)
        elif file_ext in ('.yaml', '.yml'):
            data = yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported configuration file format: {file_ext}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {file_path}")
    return data


def normalize_config_key(key: str) -> str:
    """Normalize configuration key to standard format."""
    return key.lower().replace('-', '_')
