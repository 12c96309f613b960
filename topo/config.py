"""Agent configuration from a YAML file and TOPO_* environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "TOPO_"


@dataclass
class AgentConfig:
    node_uri: str = "http://localhost:8080"
    node_login: Optional[str] = None
    node_password: Optional[str] = None
    request_timeout_s: float = 10.0
    poll_interval_ms: int = 3000
    server_uri: Optional[str] = None  # None keeps events in memory only
    server_token: Optional[str] = None
    event_buffer: int = 512
    warn_throttle_s: float = 60.0
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    auto_start: bool = True

    def validate(self) -> None:
        if not self.node_uri:
            raise ValueError("node_uri must not be empty")
        if self.poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.request_timeout_s <= 0:
            raise ValueError(f"request_timeout_s must be positive, got {self.request_timeout_s}")
        if self.event_buffer <= 0:
            raise ValueError(f"event_buffer must be positive, got {self.event_buffer}")
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ValueError(f"Unknown log level: {self.log_level}")


def _coerce(name: str, target: Any, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(target, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Invalid boolean for {name}: {value!r}")
    try:
        if isinstance(target, int):
            return int(value)
        if isinstance(target, float):
            return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {name}: {value!r}") from e
    return str(value)


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> AgentConfig:
    """
    Load agent configuration.

    Values come from the defaults, then the YAML file (``path`` or
    ``TOPO_CONFIG``), then ``TOPO_<FIELD>`` environment variables.

    Raises:
        ValueError: on unknown keys or values of the wrong type
    """
    env = os.environ if env is None else env
    cfg = AgentConfig()
    defaults = {f.name: getattr(cfg, f.name) for f in fields(AgentConfig)}

    path = path or env.get(f"{ENV_PREFIX}CONFIG")
    data: Dict[str, Any] = {}
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ValueError(f"Config file not found: {config_path}")
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")
        logger.info(f"Loaded agent config from {config_path}")

    unknown = set(data) - set(defaults)
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")

    for name, default in defaults.items():
        if name in data:
            setattr(cfg, name, _coerce(name, default, data[name]))
        env_value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None and env_value != "":
            setattr(cfg, name, _coerce(name, default, env_value))

    cfg.validate()
    return cfg
