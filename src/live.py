"""Storage Miner Fleet Watchdog.

Watches every configured host for CESS storage miner containers, follows
their on-chain status and punishments, and alerts operators through
webhooks and mail.

Startup flow:
1. Load the YAML configuration (``WATCHDOG_CONFIG_PATH``)
2. Back-fill the block window and start following the chain head
3. Launch one monitoring loop per host
4. Run until SIGINT/SIGTERM, then stop monitors and close clients

Usage:
    python -m src.live
"""

import asyncio
import signal
import sys

from rich.console import Console

from src.helpers.config import get_config_path, load_config
from src.helpers.errors import ConfigError, WatchdogError
from src.helpers.logging import get_logger
from src.monitor.context import WatchdogContext
from src.monitor.fleet import FleetOrchestrator


logger = get_logger(__name__)


class Watchdog:
    """Runs the fleet until a shutdown signal is received."""

    def __init__(self, context: WatchdogContext) -> None:
        self.context = context
        self.fleet = FleetOrchestrator(context)
        self.shutdown_event = asyncio.Event()

    def shutdown(self) -> None:
        """Gracefully shutdown the watchdog."""
        logger.info("Shutdown signal received, stopping...")
        self.shutdown_event.set()

    async def run(self) -> None:
        """Start the fleet and wait for shutdown."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.shutdown)

        try:
            await self.fleet.start()
            logger.info(
                "Watchdog running for %d hosts, scrape interval %ss",
                len(self.fleet.hosts()),
                self.context.config.scrape_interval,
            )
            await self.shutdown_event.wait()
        finally:
            await self.fleet.stop()

        logger.info("Watchdog stopped")


async def main() -> None:
    """Main entry point."""
    config_path = get_config_path()
    try:
        config = load_config(config_path)
    except ConfigError:
        logger.exception("Failed to load configuration")
        sys.exit(1)

    context = WatchdogContext(config, config_path, console=Console(stderr=True))
    try:
        await Watchdog(context).run()
    except WatchdogError:
        logger.exception("Fatal error")
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, exiting...")


if __name__ == "__main__":
    run()
