"""Tests for following live output."""

import asyncio
import gzip

import pytest

from conftest import FakeConnection, FakeProcess
from fleetcmd.executor import Executor, Mode
from fleetcmd.stream import follow


async def _run(executor):
    lines = []
    await asyncio.wait_for(
        asyncio.gather(
            executor.start(),
            follow(executor, lambda host, line, is_stderr: lines.append((host, line, is_stderr))),
        ),
        timeout=2,
    )
    return lines


@pytest.mark.asyncio
async def test_lines_split_across_chunks(transport):
    transport.add(
        "h1",
        FakeConnection(process=FakeProcess(stdout=b"alpha\nbeta\ngam", stderr=b"warn\n")),
    )

    executor = Executor(["h1"], "cat", mode=Mode.STREAM)
    lines = await _run(executor)

    assert [line for _, line, err in lines if not err] == ["alpha", "beta", "gam"]
    assert [line for _, line, err in lines if err] == ["warn"]


@pytest.mark.asyncio
async def test_hosts_streamed_independently(transport):
    transport.add("h1", FakeConnection(process=FakeProcess(stdout=b"one\n")))
    transport.add("h2", FakeConnection(process=FakeProcess(stdout=b"two\r\n")))

    executor = Executor(["h1", "h2", "down"], "cat", mode=Mode.STREAM)
    lines = await _run(executor)

    assert sorted(lines) == [("h1", "one", False), ("h2", "two", False)]
    assert "down" in executor.errors


@pytest.mark.asyncio
async def test_gzip_stream_decoded(transport):
    transport.add(
        "h1",
        FakeConnection(process=FakeProcess(stdout=gzip.compress(b"x\ny\n"), stderr=b"plain\n")),
    )

    executor = Executor(["h1"], "cat", mode=Mode.STREAM, gzip=True)
    lines = await _run(executor)

    assert ("h1", "x", False) in lines
    assert ("h1", "y", False) in lines
    assert ("h1", "plain", True) in lines


@pytest.mark.asyncio
async def test_bad_gzip_stream_stops_that_host(transport):
    transport.add("h1", FakeConnection(process=FakeProcess(stdout=b"garbage output\n")))
    transport.add("h2", FakeConnection(process=FakeProcess(stdout=gzip.compress(b"fine\n"))))

    executor = Executor(["h1", "h2"], "cat", mode=Mode.STREAM, gzip=True)
    lines = await _run(executor)

    assert [(h, line) for h, line, err in lines if not err] == [("h2", "fine")]


@pytest.mark.asyncio
async def test_follow_with_no_hosts(transport):
    executor = Executor([], "cat", mode=Mode.STREAM)

    assert await _run(executor) == []
