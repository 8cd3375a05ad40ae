"""
=============================================================================
TASKHUB CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:8080, WebSocket on /ws)
    python -m taskhub

    # Custom port, all interfaces
    python -m taskhub --host 0.0.0.0 --port 3000

    # Faster /users-slow and JSON access logs
    python -m taskhub --slow-delay 1 --log-format json

Command-line flags override TASKHUB_* environment variables, which
override the ServerConfig defaults.
"""

import argparse
import sys

from . import __version__
from .app import create_app
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskhub",
        description="In-memory task tracker over HTTP and WebSocket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m taskhub                          # Run with defaults
  python -m taskhub --port 3000              # Custom port
  python -m taskhub --host 0.0.0.0           # Listen on all interfaces
  python -m taskhub --workers 8              # 8-16 worker threads
  python -m taskhub --ws-path /socket        # WebSocket endpoint
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Minimum worker threads; max will be 2x this (default: 4-32)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FEATURE ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--ws-path",
        default=None,
        help="WebSocket endpoint path (default: /ws)"
    )

    parser.add_argument(
        "--slow-delay",
        type=float,
        default=None,
        help="Seconds POST /users-slow waits (default: 5)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"taskhub {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Start from the environment, then apply any flag that was given."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2
    if args.ws_path is not None:
        config.ws_path = args.ws_path
    if args.slow_delay is not None:
        config.slow_delay = args.slow_delay
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        server = create_app(config_from_args(args))
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
