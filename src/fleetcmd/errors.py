"""Error hierarchy for fleetcmd.

Per-host failures are not exceptions: they are recorded in
``Executor.errors``. Only problems that make the whole run meaningless
surface as exceptions.
"""

from __future__ import annotations


class FleetCmdError(Exception):
    """Base exception for all fleetcmd errors."""

    pass


class ConfigurationError(FleetCmdError):
    """Raised when configuration or authentication material is unusable."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class CodecError(FleetCmdError):
    """Raised when compressed host output cannot be decoded."""

    pass
