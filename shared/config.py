"""
Hub client configuration.

Values come from (lowest to highest precedence):
- dataclass defaults
- an optional YAML file, either top-level keys or nested under ``hub:``
- environment variables HUB_URL, HUB_REQUEST_TIMEOUT, HUB_LOG_LEVEL

Example hub.yaml:

    hub:
      url: ws://localhost:5000
      ping_interval: 15
      request_timeout: 10
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from shared.log import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("hub.yaml")


class ConfigError(Exception):
    """Raised when a configuration file or variable holds an invalid value."""
    pass


@dataclass(frozen=True)
class HubConfig:
    url: str = "ws://localhost:5000"
    ping_interval: Optional[float] = 15.0
    ping_timeout: Optional[float] = 45.0
    request_timeout: Optional[float] = None    # None waits forever
    log_level: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.startswith(("ws://", "wss://")):
            raise ConfigError(f"url must be a ws:// or wss:// URL, got {self.url!r}")
        for name in ("ping_interval", "ping_timeout", "request_timeout"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{name} must be a positive number or null, got {value!r}")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    section = data.get("hub", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'hub' section in {path} must be a mapping")

    known = {f.name for f in fields(HubConfig)}
    unknown = set(section) - known
    if unknown:
        logger.warning("Ignoring unknown config keys in %s: %s", path, sorted(unknown))
    return {k: v for k, v in section.items() if k in known}


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    url = os.getenv("HUB_URL")
    if url:
        overrides["url"] = url
    timeout = os.getenv("HUB_REQUEST_TIMEOUT")
    if timeout:
        try:
            overrides["request_timeout"] = float(timeout)
        except ValueError:
            raise ConfigError(f"HUB_REQUEST_TIMEOUT must be a number, got {timeout!r}")
    level = os.getenv("HUB_LOG_LEVEL")
    if level:
        overrides["log_level"] = level
    return overrides


def load_config(path: Optional[Union[str, Path]] = None, **overrides: Any) -> HubConfig:
    """
    Build a HubConfig from file, environment and explicit keyword overrides.

    A missing explicit path is an error; a missing default hub.yaml is not.
    Keyword overrides that are None are ignored so CLI options can be passed
    straight through.
    """
    values: Dict[str, Any] = {}
    if path is not None:
        path = Path(path).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        values.update(_read_yaml(path))
    elif DEFAULT_CONFIG_PATH.exists():
        logger.debug("Loading %s", DEFAULT_CONFIG_PATH)
        values.update(_read_yaml(DEFAULT_CONFIG_PATH))

    values.update(_env_overrides())
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return replace(HubConfig(), **values)
    except TypeError as e:
        raise ConfigError(str(e))
