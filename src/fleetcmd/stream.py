"""Follow the live output of a Stream-mode executor line by line."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import asyncssh

from .codec import StreamDecoder
from .errors import CodecError
from .executor import Executor

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

# Type alias for output callback
OutputCallback = Callable[[str, str, bool], None]  # (host, line, is_stderr) -> None


async def follow(executor: Executor, on_output: OutputCallback) -> None:
    """Read every host's stdout and stderr until they reach EOF."""
    await executor.ready.wait()
    readers = await executor.live_snapshot()

    tasks = []
    for host, pipes in readers.items():
        tasks.append(_read_stream(host, pipes.stdout, executor.gzip, False, on_output))
        # stderr never goes through the remote gzip pipe
        tasks.append(_read_stream(host, pipes.stderr, False, True, on_output))
    await asyncio.gather(*tasks)


async def _read_stream(
    host: str,
    stream: asyncssh.SSHReader,
    gzip: bool,
    is_stderr: bool,
    on_output: OutputCallback,
) -> None:
    decoder = StreamDecoder(gzip)
    pending = b""
    try:
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                break
            pending += decoder.feed(chunk)
            *lines, pending = pending.split(b"\n")
            for line in lines:
                on_output(host, _decode(line), is_stderr)
        pending += decoder.flush()
    except CodecError as e:
        logger.warning("Stopped following %s: %s", host, e)
        return
    except (OSError, asyncssh.Error) as e:
        # The session was closed underneath us, usually by close_pipe()
        logger.debug("Stream of %s ended: %s", host, e)

    if pending:
        on_output(host, _decode(pending), is_stderr)


def _decode(line: bytes) -> str:
    return line.decode("utf-8", errors="replace").rstrip("\r")
