#!/usr/bin/env python3
"""Main entry point for fleetcmd."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .config import Config, load_config, get_auth
from .errors import ConfigurationError
from .executor import Executor, Mode
from .formatter import render
from .stream import follow

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a command on multiple SSH hosts and collect the results"
    )
    parser.add_argument("hosts", nargs="+", help="Target hosts, optionally as host:port")
    parser.add_argument("-c", "--command", required=True, help="Command to run on every host")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration file")
    parser.add_argument("-p", "--port", type=int, help="Override the default SSH port")
    parser.add_argument("-u", "--user", help="Override the login user")
    parser.add_argument("-i", "--key", type=Path, help="Override the SSH private key")
    parser.add_argument("--timeout", type=int, help="Override the connect timeout in seconds")
    parser.add_argument(
        "--gzip",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Compress output on the remote side",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Follow live output instead of collecting it",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Follow live output in the TUI dashboard",
    )
    parser.add_argument("--no-header", action="store_true", help="Omit section headers")
    parser.add_argument("--no-host", action="store_true", help="Omit host labels and errors")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _apply_overrides(config: Config, args: argparse.Namespace) -> None:
    """Apply command line overrides on top of the loaded configuration."""
    if args.port is not None:
        config.server.default_port = args.port
    if args.user:
        config.auth.user = args.user
    if args.key:
        config.auth.key_file = args.key.expanduser()
    if args.timeout is not None:
        config.connect_timeout = args.timeout
    if args.gzip is not None:
        config.gzip = args.gzip


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    # Load configuration
    try:
        config = load_config(args.config) if args.config else Config()
        _apply_overrides(config, args)
        # Fail before the dashboard takes over the terminal
        get_auth(config.auth)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.dashboard:
        from .dashboard import Dashboard

        app = Dashboard(args.hosts, args.command, config)
        app.run()
        errors = app.executor.errors
        if errors:
            print(f"\nFailed hosts: {', '.join(errors)}", file=sys.stderr)
            return 1
        return 0

    mode = Mode.STREAM if args.stream else Mode.CAPTURE
    executor = Executor(args.hosts, args.command, config, mode=mode, gzip=config.gzip)

    try:
        if mode is Mode.STREAM:
            asyncio.run(_run_streaming(executor))
        else:
            asyncio.run(executor.start())
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    render(executor, sys.stdout, sys.stderr, no_header=args.no_header, no_host=args.no_host)
    return 1 if executor.errors else 0


async def _run_streaming(executor: Executor) -> None:
    """Follow all hosts, terminating remote commands on Ctrl-C."""
    # ANSI colors for different hosts
    colors = [
        "\033[36m",  # Cyan
        "\033[33m",  # Yellow
        "\033[35m",  # Magenta
        "\033[32m",  # Green
        "\033[34m",  # Blue
        "\033[91m",  # Light Red
        "\033[96m",  # Light Cyan
        "\033[93m",  # Light Yellow
    ]
    reset = "\033[0m"

    host_colors = {
        host: colors[i % len(colors)]
        for i, host in enumerate(dict.fromkeys(executor.hosts))
    }

    def on_output(host: str, line: str, is_stderr: bool) -> None:
        color = host_colors.get(host, "")
        stream = sys.stderr if is_stderr else sys.stdout
        print(f"{color}[{host}]{reset} {line}", file=stream)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _interrupt, executor)
    except NotImplementedError:
        logger.debug("Signal handlers unavailable, Ctrl-C will not stop remote commands")

    try:
        await asyncio.gather(executor.start(), follow(executor, on_output))
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass


def _interrupt(executor: Executor) -> None:
    logger.info("Interrupted, terminating remote commands")
    executor.close_pipe()


if __name__ == "__main__":
    sys.exit(main())
