"""Application settings and configuration loading utilities."""
from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import yaml

from ipgate.utils.addresses import parse_address

DEFAULT_CONFIG_FILE = "config.toml"
ENV_PREFIX = "IPGATE_"

DEFAULT_HEADERS = ("Remote-Email", "Remote-Groups", "Remote-Name", "Remote-User")


class ConfigError(RuntimeError):
    """Raised when the configuration cannot be loaded or is invalid."""


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


def _read_toml(path: Path) -> Dict[str, Any]:
    with path.open("rb") as fh:
        return tomllib.load(fh)


def _read_json(path: Path) -> Dict[str, Any]:
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be an object")
    return data


def _read_yaml(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


FILE_LOADERS: Dict[str, Callable[[Path], Dict[str, Any]]] = {
    ".toml": _read_toml,
    ".json": _read_json,
    ".yaml": _read_yaml,
    ".yml": _read_yaml,
}


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a configuration file, picking the parser from its extension."""

    loader = FILE_LOADERS.get(path.suffix.lower())
    if loader is None:
        raise ConfigError(f"Unsupported configuration format: {path.suffix or path.name}")
    try:
        return loader(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse config {path}: {exc}") from exc


def _split_list(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value)
    raise ConfigError(f"Expected a list, got {value!r}")


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _check_range(value: int, name: str, low: int, high: Optional[int] = None) -> int:
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ConfigError(f"{name} must be {bound}, got {value}")
    return value


def _split_listen_address(value: str) -> Tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise ConfigError(f"listen_address must be host:port, got {value!r}")
    port_number = _check_range(_to_int(port, "listen_address port"), "listen_address port", 0, 65535)
    return host.strip("[]"), port_number


@dataclass(frozen=True)
class ScheduleConfig:
    """Daily cutoff and pruning cadence, all in UTC."""

    hour: int = 3
    minute: int = 0
    days: int = 0
    prune_interval: int = 3600


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from the config file and environment."""

    listen_address: str = "127.0.0.1:8080"
    threads: int = 1
    headers: Tuple[str, ...] = DEFAULT_HEADERS
    allow_list: Tuple[str, ...] = ()
    days: int = 0
    hour: int = 3
    minute: int = 0
    prune_interval: int = 3600
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        _check_range(self.threads, "threads", 1)
        _check_range(self.days, "days", 0)
        _check_range(self.hour, "hour", 0, 23)
        _check_range(self.minute, "minute", 0, 59)
        _check_range(self.prune_interval, "prune_interval", 1)
        for name in self.headers:
            if not name or any(ch.isspace() or ch == ":" for ch in name):
                raise ConfigError(f"Invalid header name: {name!r}")
        for address in self.allow_list:
            if parse_address(address) is None:
                raise ConfigError(f"Invalid allow_list address: {address!r}")
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise ConfigError(f"Unknown log_level: {self.log_level!r}")
        _split_listen_address(self.listen_address)

    @property
    def schedule(self) -> ScheduleConfig:
        return ScheduleConfig(
            hour=self.hour,
            minute=self.minute,
            days=self.days,
            prune_interval=self.prune_interval,
        )

    @property
    def bind_address(self) -> Tuple[str, int]:
        """Split ``listen_address`` into host and port."""

        return _split_listen_address(self.listen_address)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Settings":
        """Build settings from already parsed key/value pairs."""

        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            if key in ("listen_address", "log_level"):
                kwargs[key] = str(value)
            elif key in ("headers", "allow_list"):
                kwargs[key] = _split_list(value)
            elif key in ("threads", "days", "hour", "minute", "prune_interval"):
                kwargs[key] = _to_int(value, key)
            else:
                raise ConfigError(f"Unknown configuration key: {key}")
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Load the config file named by ``IPGATE_CONFIG`` (or ``CONFIG``) and apply env overrides."""

        environ = os.environ if environ is None else environ
        explicit = environ.get(f"{ENV_PREFIX}CONFIG") or environ.get("CONFIG")
        path = Path(explicit or DEFAULT_CONFIG_FILE)

        values: Dict[str, Any] = {}
        if path.exists():
            values.update(load_config_file(path))
        elif explicit:
            raise ConfigError(f"Config file not found: {path}")

        for name in cls.__dataclass_fields__:
            env_value = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if env_value is not None:
                values[name] = env_value
        return cls.from_mapping(values)


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings.from_env()
