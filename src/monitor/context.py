"""Process-wide resources shared by every host monitor."""

from __future__ import annotations

from pathlib import Path

from typing import TYPE_CHECKING

from src.alerts.dispatcher import AlertDispatcher
from src.data.blocks.window import BlockWindowCache, window_size_for
from src.data.chain.client import SubstrateChainClient
from src.data.containers.client import DockerClient
from src.helpers.http import create_http_client, log_and_suppress_errors
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx
    from rich.console import Console

    from src.data.chain.client import ChainQuery
    from src.data.containers.client import ContainerRuntime
    from src.helpers.config_models import HostConfig, WatchdogConfig


logger = get_logger(__name__)


class WatchdogContext:
    """Explicit owner of the configuration, block window, alerting and clients.

    The block window is created once and reused across reloads unless the
    scrape interval changes its size. The dispatcher is rebuilt on every
    configuration change.
    """

    def __init__(
        self,
        config: WatchdogConfig,
        config_path: str | Path,
        *,
        http_client: httpx.AsyncClient | None = None,
        runtime_factory: Callable[[HostConfig], ContainerRuntime] = DockerClient,
        chain_factory: Callable[[], ChainQuery] = SubstrateChainClient,
        console: Console | None = None,
    ) -> None:
        """Initialize the context.

        Args:
            config: Loaded configuration
            config_path: YAML file the configuration was loaded from
            http_client: Client used for webhooks (created if omitted)
            runtime_factory: Builds the container runtime client of a host
            chain_factory: Builds a chain client
            console: Console for back-fill progress (optional)
        """
        self.config = config
        self.config_path = Path(config_path)
        self.http_client = http_client or create_http_client()
        self.runtime_factory = runtime_factory
        self.chain_factory = chain_factory
        self.console = console

        self.block_cache: BlockWindowCache | None = None
        self.dispatcher = AlertDispatcher.from_config(config.alert, self.http_client)
        self._retired_dispatchers: list[AlertDispatcher] = []

    def apply_config(self, config: WatchdogConfig) -> None:
        """Switch to a new configuration and rebuild the alert channels."""
        self.config = config
        self._retired_dispatchers.append(self.dispatcher)
        self.dispatcher = AlertDispatcher.from_config(config.alert, self.http_client)

    async def release_retired_dispatchers(self) -> None:
        """Wait for alerts of previous configurations, then drop their dispatchers."""
        retired, self._retired_dispatchers = self._retired_dispatchers, []
        for dispatcher in retired:
            await dispatcher.close()

    async def ensure_block_cache(self) -> BlockWindowCache:
        """Return the block window, creating and starting it when needed."""
        size = window_size_for(self.config.scrape_interval)
        if self.block_cache is not None and self.block_cache.max_size != size:
            logger.info(
                "Scrape interval changed, resizing block window from %d to %d blocks",
                self.block_cache.max_size,
                size,
            )
            await self._close_block_cache()

        if self.block_cache is None:
            self.block_cache = BlockWindowCache.for_interval(
                self.chain_factory(), self.config.scrape_interval, console=self.console
            )
            await self.block_cache.initialize()
            self.block_cache.start_polling()
        return self.block_cache

    async def _close_block_cache(self) -> None:
        if self.block_cache is None:
            return
        cache = self.block_cache
        self.block_cache = None
        async with log_and_suppress_errors("close block window"):
            await cache.close()

    async def close(self) -> None:
        """Stop the block window, flush pending alerts and close clients."""
        await self._close_block_cache()
        for dispatcher in [*self._retired_dispatchers, self.dispatcher]:
            await dispatcher.close()
        self._retired_dispatchers.clear()
        await self.http_client.aclose()
        logger.info("Watchdog context closed")


__all__ = ["WatchdogContext"]
