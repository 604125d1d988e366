from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import List, Optional

from .config.config_parser import (
    apply_cli_overrides,
    build_responder_config,
    parse_config_file,
)
from .config.config_schema import ConfigError
from .config.logging_config import init_logging
from .server import MdnsServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdnsresponder",
        description="Multicast DNS responder that publishes this host's .local. name",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument(
        "--hostname",
        default=None,
        help="Machine name to claim instead of the OS hostname (without .local.)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["debug", "info", "warn", "error", "crit"],
        help="Override logging.level from the config file",
    )
    return parser


def _install_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, loop.stop)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - non-POSIX loops
            pass


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the responder.
    Parses arguments, loads configuration, sets up logging and runs the
    event loop until interrupted.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code.

    Example use:
        CLI:
            mdnsresponder --config config.yaml --log-level debug
            PYTHONPATH=src python -m mdnsresponder.main --hostname laptop
    """
    args = build_parser().parse_args(argv)

    try:
        cfg = parse_config_file(args.config)
        apply_cli_overrides(cfg, hostname=args.hostname, log_level=args.log_level)
        config = build_responder_config(cfg)
    except ConfigError as exc:
        print(str(exc))
        return 1

    init_logging(cfg.get("logging"))
    logger = logging.getLogger("mdnsresponder.main")
    if args.config:
        logger.info("Loaded config from %s", args.config)

    loop = asyncio.new_event_loop()
    server: Optional[MdnsServer] = None
    try:
        asyncio.set_event_loop(loop)
        _install_signal_handlers(loop)
        server = MdnsServer(config, loop)
        server.start()
        loop.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        if server is not None:
            server.close()
        loop.close()
        asyncio.set_event_loop(None)
        logger.info("Responder stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
