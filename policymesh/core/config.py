"""
Configuration module for policymesh.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import os

from ..errors import ConfigError
from ..util.config import (
    get_config_value, load_config_file, normalize_config_key, parse_duration_string
)


DEFAULT_STATE_DIR = os.path.join("~", ".policymesh")
DEFAULT_TIMEOUT = 30.0


def _default_state_dir() -> Path:
    return Path(DEFAULT_STATE_DIR).expanduser()


@dataclass
class Config:
    """Client configuration"""
    state_dir: Path = field(default_factory=_default_state_dir)
    default_node: Optional[str] = None
    # Bound on one request/response exchange, in seconds
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"

    def __post_init__(self):
        self.state_dir = Path(self.state_dir).expanduser()
        if isinstance(self.timeout, str):
            self.timeout = _parse_timeout(self.timeout)

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables"""
        return cls(
            state_dir=get_config_value("state_dir", DEFAULT_STATE_DIR),
            default_node=get_config_value("default_node") or None,
            timeout=_parse_timeout(get_config_value("timeout", str(DEFAULT_TIMEOUT))),
            log_level=get_config_value("log_level", "INFO").upper(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create configuration from a dictionary, ignoring unknown keys"""
        values = {normalize_config_key(k): v for k, v in data.items()}
        known = {k: values[k] for k in ("state_dir", "default_node", "log_level") if k in values}
        if "timeout" in values:
            known["timeout"] = _parse_timeout(str(values["timeout"]))
        return cls(**known)

    @classmethod
    def from_file(cls, file_path: str) -> "Config":
        """Create configuration from a JSON or YAML file"""
        try:
            data = load_config_file(file_path)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot load configuration from {file_path}: {e}", cause=e)
        return cls.from_dict(data)

    def validate(self) -> bool:
        """Validate the configuration"""
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Unknown log level: {self.log_level}")
        return True


def _parse_timeout(value: str) -> float:
    try:
        return parse_duration_string(value).total_seconds()
    except ValueError as e:
        raise ConfigError(f"Invalid timeout: {value}", cause=e)
