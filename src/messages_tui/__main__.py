"""Entry point: python -m messages_tui"""
from __future__ import annotations

import argparse
import logging
import signal
import sys

from . import __version__, logging_setup
from .config import load_config
from .store import SessionStore, StoreError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="messages-tui",
        description="Terminal client for a phone-paired messages gateway.",
    )
    parser.add_argument(
        "--clear-session",
        action="store_true",
        help="forget the saved pairing and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"messages-tui {__version__}",
    )
    parser.add_argument("--config", metavar="PATH", help="config file to load")
    return parser


def clear_session(store: SessionStore | None = None) -> int:
    store = store or SessionStore()
    try:
        store.clear_session()
    except StoreError as exc:
        print(f"Error clearing session: {exc}", file=sys.stderr)
        return 1
    print("Session cleared")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Launch the messages TUI."""
    args = build_parser().parse_args(argv)
    if args.clear_session:
        return clear_session()

    try:
        runtime = logging_setup.configure()
    except OSError as exc:
        print(f"warning: file logging disabled: {exc}", file=sys.stderr)
    else:
        logger.info("messages-tui %s starting, log level %s", __version__, runtime.level_name)

    from .app import MessagesApp

    app = MessagesApp(load_config(args.config))

    def _handle_terminate(signum: int, _frame: object | None) -> None:
        logger.info("Received signal %d, shutting down", signum)
        app.call_later(app.request_quit)

    signal.signal(signal.SIGTERM, _handle_terminate)
    app.run()
    logger.info("messages-tui exited")
    return 0


if __name__ == "__main__":
    sys.exit(main())
