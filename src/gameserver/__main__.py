"""
=============================================================================
GAME SERVER CLI ENTRY POINT
=============================================================================

    # Run with defaults (all interfaces, port 9034)
    python -m gameserver

    # Custom port, localhost only
    python -m gameserver --host 127.0.0.1 --port 9100

    # Shorter pause between matches, no waiting line
    python -m gameserver --reset-delay 1 --max-queued 0

Settings not given on the command line fall back to GAME_* environment
variables, then to the ServerConfig defaults.

=============================================================================
EXIT CODES
=============================================================================

    0   graceful shutdown (Ctrl+C / SIGTERM)
    1   invalid configuration
    2   bind address could not be resolved
    3   port could not be bound
    4   bound socket could not listen

=============================================================================
"""

import argparse
import sys
from dataclasses import replace

from . import __version__
from .config import ServerConfig
from .errors import BindError, ListenError, ResolveError
from .server import GameServer


EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_RESOLVE = 2
EXIT_BIND = 3
EXIT_LISTEN = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gameserver",
        description="Two-player tic-tac-toe server over TCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m gameserver                         # All interfaces, port 9034
  python -m gameserver --port 9100             # Custom port
  python -m gameserver --host 127.0.0.1        # Localhost only
  python -m gameserver --reset-delay 1         # Faster rematches
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind to (default: all interfaces)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 9034)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # GAME ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--reset-delay",
        type=float,
        default=None,
        help="Seconds to show the final board before the next match (default: 3)"
    )

    parser.add_argument(
        "--send-attempts",
        type=int,
        default=None,
        help="Write attempts per packet before dropping a client (default: 10)"
    )

    parser.add_argument(
        "--max-queued",
        type=int,
        default=None,
        help="Connections allowed to wait for a seat; 0 rejects them (default: 4)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"gameserver {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace, base: ServerConfig) -> ServerConfig:
    """Overlay the arguments that were actually given on top of base."""
    overrides = {
        "host": args.host,
        "port": args.port,
        "reset_delay": args.reset_delay,
        "send_attempts": args.send_attempts,
        "max_queued": args.max_queued,
        "log_level": args.log_level,
    }
    return replace(base, **{k: v for k, v in overrides.items() if v is not None})


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args, ServerConfig.from_env())
        server = GameServer(config)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        server.run()
    except ResolveError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_RESOLVE
    except BindError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BIND
    except ListenError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LISTEN

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
