"""Entry point for ``python -m src.build_daemon``."""
from __future__ import annotations

import argparse
import sys

from src.shared.config import DaemonConfig
from src.shared.errors import ListenerError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="build-daemon",
        description="Serve single-flight build requests on a unix socket.",
    )
    parser.add_argument(
        "-s", "--socket-path",
        help="Absolute path of the unix socket to listen on",
    )
    parser.add_argument("--log-level", help="Log level (debug, info, ...)")
    parser.add_argument(
        "--engine-command", help="Build engine executable to invoke per build",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    overrides = {}
    if args.socket_path:
        overrides["socket_path"] = args.socket_path
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.engine_command:
        overrides["build_engine_command"] = args.engine_command
    config = DaemonConfig().model_copy(update=overrides)

    from src.build_daemon.listener import listen

    try:
        listen(config)
    except ListenerError as exc:
        print(f"build-daemon: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
