"""Loading of the resolver's TOML configuration."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any


class ConfigError(ValueError):
    """Raised when the configuration cannot be read or is invalid."""


@dataclass
class Config:
    """Resolver settings as read from config.toml."""

    listen_addr: str
    upstream_addr: str
    blocklist_sources: list[str] | None = None
    dot_listen_addr: str | None = None
    doh_listen_addr: str | None = None
    tls_cert: Path | None = None
    tls_key: Path | None = None
    enable_udp: bool | None = None
    enable_dot: bool | None = None
    enable_doh: bool | None = None


def _home_dir() -> Path:
    try:
        return Path.home()
    except RuntimeError:
        return Path("/")


def default_config_path() -> Path:
    """Return ~/.config/zendns/config.toml, falling back to / as home."""
    return _home_dir() / ".config" / "zendns" / "config.toml"


def _field(data: dict[str, Any], key: str, kind: type, *, required: bool = False) -> Any:
    if key not in data:
        if required:
            raise ConfigError(f"Failed to parse config.toml: missing field `{key}`")
        return None
    value = data[key]
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise ConfigError(
            f"Failed to parse config.toml: field `{key}` must be of type {kind.__name__}"
        )
    return value


def _sources(data: dict[str, Any]) -> list[str] | None:
    sources = _field(data, "blocklist_sources", list)
    if sources is None:
        return None
    if not all(isinstance(item, str) for item in sources):
        raise ConfigError(
            "Failed to parse config.toml: `blocklist_sources` must hold strings only"
        )
    return list(sources)


def _path(data: dict[str, Any], key: str) -> Path | None:
    value = _field(data, key, str)
    return None if value is None else Path(value)


def parse_config(text: str) -> Config:
    """Parse TOML text into a Config; unknown keys are ignored."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config.toml: {exc}") from exc
    return Config(
        listen_addr=_field(data, "listen_addr", str, required=True),
        upstream_addr=_field(data, "upstream_addr", str, required=True),
        blocklist_sources=_sources(data),
        dot_listen_addr=_field(data, "dot_listen_addr", str),
        doh_listen_addr=_field(data, "doh_listen_addr", str),
        tls_cert=_path(data, "tls_cert"),
        tls_key=_path(data, "tls_key"),
        enable_udp=_field(data, "enable_udp", bool),
        enable_dot=_field(data, "enable_dot", bool),
        enable_doh=_field(data, "enable_doh", bool),
    )


def load_config(path: str | Path | None = None) -> Config:
    """Read and parse the configuration file (the default location if no path)."""
    config_path = Path(path) if path is not None else default_config_path()
    try:
        content = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read config.toml: {exc}") from exc
    return parse_config(content)