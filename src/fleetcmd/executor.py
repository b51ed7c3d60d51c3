"""SSH execution engine for fleetcmd."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import asyncssh

from .codec import compress_command
from .config import Config, get_auth

logger = logging.getLogger(__name__)


class Mode(Enum):
    """How the command output is delivered."""

    CAPTURE = "capture"  # run to completion, buffer stdout
    STREAM = "stream"  # expose live readers while the command runs


class NodeStatus(Enum):
    """Status of a host's execution."""

    PENDING = "pending"
    CONNECTING = "connecting"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class StreamReaders:
    """Live output handles of a running remote command."""

    stdout: asyncssh.SSHReader
    stderr: asyncssh.SSHReader


# Type alias for status callback
StatusCallback = Callable[[str, NodeStatus], None]  # (host, status) -> None


def normalize_host(host: str, default_port: int) -> tuple[str, int]:
    """Split a host identifier into address and port.

    Identifiers without an explicit port get ``default_port``. Bracketed
    IPv6 addresses may carry a port; a bare IPv6 address never does.
    """
    if host.startswith("["):
        address, _, rest = host[1:].partition("]")
        if rest.startswith(":") and rest[1:]:
            return address, _parse_port(rest[1:])
        return address, default_port
    if host.count(":") == 1:
        address, port = host.split(":")
        return address, _parse_port(port)
    return host, default_port


def _parse_port(text: str) -> int:
    port = int(text)
    if not 0 < port < 65536:
        raise ValueError(f"port out of range: {port}")
    return port


def _describe_exit(exit_status: int | None, exit_signal: tuple | None, stderr=b"") -> str:
    """Describe a failed remote command the way ssh clients report it."""
    if exit_signal:
        reason = f"Process killed by signal {exit_signal[0]}"
    elif exit_status is None:
        reason = "Session closed before the command exited"
    else:
        reason = f"Process exited with status {exit_status}"
    stderr = stderr or b""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    stderr = stderr.rstrip("\n")
    return f"{stderr}\n{reason}" if stderr else reason


class Executor:
    """Runs one command on many hosts and aggregates the results.

    In ``Mode.CAPTURE`` every host's command runs to completion and its
    standard output lands in ``outputs``. In ``Mode.STREAM`` each running
    process is registered in ``live_sessions`` and its readers in
    ``live_readers``; ``ready`` is set once every host has either registered
    or failed, so a caller can start reading before any command exits.
    Failures of any kind are recorded per host in ``errors``.
    """

    def __init__(
        self,
        hosts: list[str],
        command: str,
        config: Config | None = None,
        mode: Mode = Mode.CAPTURE,
        gzip: bool = False,
        on_status: StatusCallback | None = None,
    ):
        self.hosts = list(hosts)
        self.command = compress_command(command) if gzip else command
        self.config = config or Config()
        self.mode = mode
        self.gzip = gzip
        self.on_status = on_status

        self.outputs: dict[str, bytes] = {}
        self.errors: dict[str, str] = {}
        self.live_sessions: dict[str, asyncssh.SSHClientProcess] = {}
        self.live_readers: dict[str, StreamReaders] = {}
        self.ready = asyncio.Event()

        self._lock = asyncio.Lock()
        self._arrived: set[str] = set()
        # Every map is keyed by host, so each distinct host runs once
        self._targets = list(dict.fromkeys(self.hosts))

    def _emit_status(self, host: str, status: NodeStatus) -> None:
        """Emit status change for a host."""
        if self.on_status:
            self.on_status(host, status)

    async def start(self) -> None:
        """Run the command on all hosts in parallel.

        Returns once every host's worker has finished. Raises
        ``ConfigurationError`` before contacting any host if the
        authentication material cannot be built.
        """
        auth = get_auth(self.config.auth)

        if not self._targets:
            self.ready.set()
            return

        for host in self._targets:
            self._emit_status(host, NodeStatus.PENDING)

        tasks = [self._run_host(host, auth) for host in self._targets]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for host, result in zip(self._targets, results):
            if isinstance(result, Exception):
                logger.error("Worker for %s crashed: %r", host, result)
                await self._record_error(host, f"Internal error: {result}")
                self._emit_status(host, NodeStatus.FAILED)

    async def _run_host(self, host: str, auth: dict) -> None:
        """Connect to a single host and run the command there."""
        self._emit_status(host, NodeStatus.CONNECTING)

        try:
            address, port = normalize_host(host, self.config.server.default_port)
            logger.debug("Connecting to %s:%d", address, port)
            async with asyncssh.connect(
                address,
                port=port,
                known_hosts=None,  # Trust the operator's network, not host keys
                connect_timeout=self.config.connect_timeout,
                **auth,
            ) as conn:
                self._emit_status(host, NodeStatus.RUNNING)
                if self.mode is Mode.STREAM:
                    ok = await self._stream(conn, host)
                else:
                    ok = await self._capture(conn, host)
        except ValueError as e:
            await self._record_error(host, f"Invalid host: {e}")
            ok = False
        except asyncssh.Error as e:
            logger.debug("SSH error on %s: %s", host, e)
            await self._record_error(host, f"SSH error: {e}")
            ok = False
        except asyncio.TimeoutError:
            logger.debug("Timed out connecting to %s", host)
            await self._record_error(host, "Connection error: timed out")
            ok = False
        except OSError as e:
            logger.debug("Connection error on %s: %s", host, e)
            await self._record_error(host, f"Connection error: {e}")
            ok = False
        finally:
            if self.mode is Mode.STREAM:
                await self._arrive(host)

        self._emit_status(host, NodeStatus.SUCCESS if ok else NodeStatus.FAILED)

    async def _capture(self, conn: asyncssh.SSHClientConnection, host: str) -> bool:
        """Run the command to completion and record its output."""
        result = await conn.run(self.command, encoding=None, check=False)
        stdout = result.stdout or b""

        async with self._lock:
            if result.exit_status == 0:
                self.outputs[host] = stdout
                return True
            if stdout:
                self.outputs[host] = stdout
            self.errors[host] = _describe_exit(
                result.exit_status, result.exit_signal, result.stderr
            )
        return False

    async def _stream(self, conn: asyncssh.SSHClientConnection, host: str) -> bool:
        """Start the command, publish its readers and wait for it to exit."""
        process = await conn.create_process(self.command, encoding=None)

        async with self._lock:
            self.live_sessions[host] = process
            self.live_readers[host] = StreamReaders(process.stdout, process.stderr)
        await self._arrive(host)

        await process.wait_closed()
        status = process.exit_status
        logger.debug("Command on %s finished with status %s", host, status)
        if status == 0:
            return True
        await self._record_error(host, _describe_exit(status, process.exit_signal))
        return False

    async def _record_error(self, host: str, message: str) -> None:
        async with self._lock:
            self.errors.setdefault(host, message)

    async def _arrive(self, host: str) -> None:
        """Count a host towards the stream readiness signal."""
        async with self._lock:
            self._arrived.add(host)
            if len(self._arrived) == len(self._targets):
                self.ready.set()

    async def live_snapshot(self) -> dict[str, StreamReaders]:
        """Copy of the registered stream readers."""
        async with self._lock:
            return dict(self.live_readers)

    def close_pipe(self) -> None:
        """Terminate every live remote command.

        Best effort: a process that already exited may refuse the signal.
        """
        for host, process in list(self.live_sessions.items()):
            try:
                process.send_signal("TERM")
            except (OSError, asyncssh.Error) as e:
                logger.debug("Cannot signal %s: %s", host, e)
            try:
                process.close()
            except (OSError, asyncssh.Error) as e:
                logger.debug("Cannot close session on %s: %s", host, e)
