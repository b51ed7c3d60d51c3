"""Configuration loader for fleetcmd."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import asyncssh
import yaml

from .errors import ConfigurationError


@dataclass
class ServerConfig:
    """Settings that apply to every remote host."""

    default_port: int = 22


@dataclass
class AuthConfig:
    """Identity used to log in to the remote hosts."""

    user: str = ""
    key_file: Path | None = None
    passphrase: str | None = None
    password: str | None = None


@dataclass
class Config:
    """Main configuration for a run."""

    server: ServerConfig = field(default_factory=ServerConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    gzip: bool = False
    connect_timeout: int = 10
    source_path: Path | None = None  # Path to the original config file


def load_config(config_path: str | Path) -> Config:
    """Load and validate configuration from a YAML file."""
    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}", str(config_path))

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}", str(config_path)) from e

    config = _parse_config(raw or {})
    config.source_path = config_path
    return config


def _parse_server(raw: dict[str, Any]) -> ServerConfig:
    """Parse the server section."""
    server_raw = raw.get("server") or {}
    port = server_raw.get("default_port", 22)
    if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
        raise ConfigurationError(f"Invalid server.default_port: {port!r}")
    return ServerConfig(default_port=port)


def _parse_auth(raw: dict[str, Any]) -> AuthConfig:
    """Parse the auth section."""
    auth_raw = raw.get("auth") or {}
    key_file = auth_raw.get("key_file")
    return AuthConfig(
        user=auth_raw.get("user") or "",
        key_file=Path(key_file).expanduser() if key_file else None,
        passphrase=auth_raw.get("passphrase"),
        password=auth_raw.get("password"),
    )


def _parse_config(raw: Any) -> Config:
    """Parse raw YAML data into Config object."""
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a mapping")

    timeout = raw.get("connect_timeout", 10)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigurationError(f"Invalid connect_timeout: {timeout!r}")

    return Config(
        server=_parse_server(raw),
        auth=_parse_auth(raw),
        gzip=bool(raw.get("gzip", False)),
        connect_timeout=timeout,
    )


def get_auth(auth: AuthConfig) -> dict[str, Any]:
    """Build the asyncssh keyword arguments for the configured identity.

    Without a configured user asyncssh falls back to the local user and its
    default keys and agent, so nothing is passed.
    """
    if not auth.user:
        return {}

    options: dict[str, Any] = {"username": auth.user}
    if auth.key_file:
        try:
            key = asyncssh.read_private_key(auth.key_file, auth.passphrase)
        except (OSError, asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
            raise ConfigurationError(
                f"Cannot load SSH key {auth.key_file}: {e}", str(auth.key_file)
            ) from e
        options["client_keys"] = [key]
    if auth.password:
        options["password"] = auth.password
    return options
