"""Client entrypoint. Loads config, connects as a character, runs until interrupted."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path

from loguru import logger

from fchat import __version__
from fchat.client import FchatClient
from fchat.config import Config, cfg, load_config_with_env
from fchat.errors import FchatConfigurationError, FchatError
from fchat.protocol import ServerCommand


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. Replace default logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format=(
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan> | {message}"
        ),
    )


def reload_config(config_path: Path) -> Config:
    """Load config from path and update global cfg."""
    data = load_config_with_env(config_path)
    cfg.reload(data)
    return cfg


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="F-Chat client: connect a character and mirror chat state")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--character",
        help="Character to log in as (default: FCHAT_CHARACTER)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        config = reload_config(args.config)
    except FchatConfigurationError as exc:
        logger.error("Invalid config {}: {}", args.config, exc)
        sys.exit(1)

    character = args.character or config.character
    if not (config.account and config.password and character):
        logger.error("FCHAT_ACCOUNT, FCHAT_PASSWORD and a character are required")
        sys.exit(1)

    client = FchatClient.from_config(config, config.account, config.password)
    try:
        asyncio.run(_run(client, character))
    except KeyboardInterrupt:
        pass


async def _run(client: FchatClient, character: str) -> None:
    """Connect, log a few lifecycle events, wait for close or a signal."""
    client.on_open(lambda _ticket: logger.info("Socket open, identifying as {}", character))
    client.on(ServerCommand.IDN, lambda data: logger.info("Identified as {}", data.get("character")))
    client.on(ServerCommand.CON, lambda data: logger.info("{} characters in chat", data.get("count")))
    client.on_error(lambda exc: logger.warning("Client error: {}", exc))
    client.on_close(lambda: logger.info("Connection closed"))

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        try:
            await client.connect(character)
        except FchatError as exc:
            logger.error("Connect failed: {}", exc)
            return

        closed = asyncio.create_task(client.wait_closed())
        stopped = asyncio.create_task(stop.wait())
        await asyncio.wait({closed, stopped}, return_when=asyncio.FIRST_COMPLETED)
        stopped.cancel()
        logger.info("Shutting down")
        await client.disconnect()
        closed.cancel()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)


if __name__ == "__main__":
    main()
