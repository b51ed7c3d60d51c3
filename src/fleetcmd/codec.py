"""Transparent gzip handling for remote command output.

Compression happens on the remote side by piping the command through
gzip; decoding is done locally, either in one shot for captured output or
incrementally for followed streams.
"""

from __future__ import annotations

import gzip
import zlib

from .errors import CodecError

GZIP_SUFFIX = " | /usr/bin/gzip -f"

# zlib window bits selecting the gzip container
_GZIP_WBITS = 16 + zlib.MAX_WBITS


def compress_command(cmd: str) -> str:
    """Rewrite a command so its standard output is gzip-compressed."""
    return cmd + GZIP_SUFFIX


def decompress(data: bytes) -> bytes:
    """Decode a complete gzip payload."""
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise CodecError(f"cannot decompress output: {e}") from e


class StreamDecoder:
    """Incremental decoder for chunks read from a live stream.

    With gzip disabled chunks pass through unchanged.
    """

    def __init__(self, gzip: bool = False):
        self._inflater = zlib.decompressobj(_GZIP_WBITS) if gzip else None

    def feed(self, chunk: bytes) -> bytes:
        if self._inflater is None:
            return chunk
        try:
            return self._inflater.decompress(chunk)
        except zlib.error as e:
            raise CodecError(f"cannot decompress stream: {e}") from e

    def flush(self) -> bytes:
        if self._inflater is None:
            return b""
        try:
            return self._inflater.flush()
        except zlib.error as e:
            raise CodecError(f"cannot decompress stream: {e}") from e
