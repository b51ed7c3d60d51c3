"""fleetcmd: Run one command on many SSH hosts and report what happened."""

from .config import AuthConfig, Config, ServerConfig, get_auth, load_config
from .errors import CodecError, ConfigurationError, FleetCmdError
from .executor import Executor, Mode, NodeStatus, StreamReaders, normalize_host
from .formatter import render
from .stream import follow

__all__ = [
    "AuthConfig",
    "Config",
    "ServerConfig",
    "get_auth",
    "load_config",
    "CodecError",
    "ConfigurationError",
    "FleetCmdError",
    "Executor",
    "Mode",
    "NodeStatus",
    "StreamReaders",
    "normalize_host",
    "render",
    "follow",
]
