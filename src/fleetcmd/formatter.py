"""Render an executor's results as a human-readable report."""

from __future__ import annotations

import logging
from typing import TextIO

from .codec import decompress
from .errors import CodecError
from .executor import Executor

logger = logging.getLogger(__name__)

ERROR_HEADER = "=" * 33 + " ERROR " + "=" * 33
OUTPUT_HEADER = "=" * 33 + " OUTPUT " + "=" * 33

# Width of the right-aligned host label in the output section
LABEL_WIDTH = 15


def render(
    executor: Executor,
    out: TextIO,
    err: TextIO,
    no_header: bool = False,
    no_host: bool = False,
) -> None:
    """Write the error section to ``err`` and the output section to ``out``.

    The error section is only written when host labels are shown, since an
    error without its host is meaningless. Hosts follow the executor's host
    order; entries for hosts not in that list come last.
    """
    hosts = list(dict.fromkeys(executor.hosts))

    if executor.errors and not no_host:
        if not no_header:
            err.write(ERROR_HEADER + "\n")
        for host in _ordered(hosts, executor.errors):
            _write_error(err, host, executor.errors[host])

    if executor.outputs:
        if not no_header:
            out.write(OUTPUT_HEADER + "\n")
        for host in _ordered(hosts, executor.outputs):
            data = executor.outputs[host]
            if executor.gzip:
                try:
                    data = decompress(data)
                except CodecError as e:
                    logger.warning("Skipping output of %s: %s", host, e)
                    continue
            _write_output(out, host, data.decode("utf-8", errors="replace"), no_host)


def _ordered(hosts: list[str], results: dict) -> list[str]:
    return [h for h in hosts if h in results] + [h for h in results if h not in hosts]


def _write_error(err: TextIO, host: str, text: str) -> None:
    text = text.rstrip("\n")
    if "\n" in text:
        err.write(f"{host} :\n{text}\n")
    else:
        err.write(f"{host} : {text}\n")


def _write_output(out: TextIO, host: str, text: str, no_host: bool) -> None:
    text = text.rstrip("\n")
    if not no_host:
        out.write(f"{host:>{LABEL_WIDTH}}: ")
        if "\n" in text:
            out.write("\n")
    out.write(text)
    out.write("\n")
