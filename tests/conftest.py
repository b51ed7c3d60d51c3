"""Shared fixtures: an in-memory stand-in for the SSH transport."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import asyncssh
import pytest


def completed(stdout: bytes = b"", stderr: bytes = b"", exit_status: int = 0, exit_signal=None):
    """Result object shaped like asyncssh.SSHCompletedProcess."""
    return SimpleNamespace(
        stdout=stdout, stderr=stderr, exit_status=exit_status, exit_signal=exit_signal
    )


class FakeReader:
    """Serves a fixed payload in chunks, then EOF."""

    def __init__(self, data: bytes = b"", chunk_size: int = 4):
        self._chunks = [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]

    async def read(self, n: int = -1) -> bytes:
        await asyncio.sleep(0)
        if not self._chunks:
            return b""
        return self._chunks.pop(0)


class FakeProcess:
    """Remote process that exits at once, or only when closed if ``hold``."""

    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", exit_status: int | None = 0, exit_signal=None, hold: bool = False):
        self.stdout = FakeReader(stdout)
        self.stderr = FakeReader(stderr)
        self.exit_status = None
        self.exit_signal = None
        self.signals: list[str] = []
        self.closed = False
        self.signal_error: Exception | None = None
        self._final_status = exit_status
        self._final_signal = exit_signal
        self._done = asyncio.Event()
        if not hold:
            self.finish()

    def finish(self) -> None:
        self.exit_status = self._final_status
        self.exit_signal = self._final_signal
        self._done.set()

    async def wait_closed(self) -> None:
        await self._done.wait()

    def send_signal(self, signal: str) -> None:
        if self.signal_error:
            raise self.signal_error
        self.signals.append(signal)

    def close(self) -> None:
        self.closed = True
        self._done.set()


class FakeConnection:
    """Connection answering ``run`` and ``create_process`` from canned data."""

    def __init__(self, result=None, process: FakeProcess | None = None, error: Exception | None = None, delay: float = 0):
        self.result = result if result is not None else completed()
        self.process = process
        self.error = error
        self.delay = delay
        self.commands: list[str] = []
        self.closed = False

    async def run(self, command: str, **kwargs):
        self.commands.append(command)
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result

    async def create_process(self, command: str, **kwargs):
        self.commands.append(command)
        if self.error:
            raise self.error
        return self.process or FakeProcess()


class _Dial:
    def __init__(self, target):
        self._target = target

    async def __aenter__(self):
        await asyncio.sleep(0)
        if isinstance(self._target, BaseException):
            raise self._target
        return self._target

    async def __aexit__(self, *exc_info):
        self._target.closed = True
        return False


class FakeTransport:
    """Replacement for ``asyncssh.connect`` keyed by address."""

    def __init__(self):
        self.targets: dict[str, object] = {}
        self.calls: list[tuple[str, int, dict]] = []

    def add(self, address: str, target=None):
        target = target if target is not None else FakeConnection()
        self.targets[address] = target
        return target

    def connect(self, host: str, port: int = 22, **kwargs):
        self.calls.append((host, port, kwargs))
        target = self.targets.get(host)
        if target is None:
            target = OSError(f"Could not resolve hostname {host}")
        return _Dial(target)


@pytest.fixture
def transport(monkeypatch) -> FakeTransport:
    """Route every asyncssh.connect call to an in-memory transport."""
    fake = FakeTransport()
    monkeypatch.setattr(asyncssh, "connect", fake.connect)
    return fake
