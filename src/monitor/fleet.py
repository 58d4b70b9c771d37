"""Lifecycle of the host monitors: start, hot reload and shutdown.

Reload protocol:

1. Every monitor is deactivated; a cycle already running is not interrupted
2. The orchestrator polls until no monitor is collecting, bounded by a
   number of attempts and by a deadline
3. The configuration is reloaded from disk, alert channels are rebuilt and
   a new generation of monitors is launched

When the deadline or the attempt budget runs out the reload is abandoned
and the previous monitors stay stopped.
"""

from __future__ import annotations

import asyncio

from typing import TYPE_CHECKING, Any

from src.data.chain.stats import ChainStatReader
from src.helpers.config import load_config, redact_config, save_alert_toggle, save_config
from src.helpers.constants import MAX_RELOAD_TIMEOUT, RELOAD_MAX_ATTEMPTS, RELOAD_POLL_INTERVAL
from src.helpers.errors import ConfigError, ReloadError, WatchdogError
from src.helpers.http import log_and_suppress_errors
from src.helpers.logging import get_logger
from src.monitor.host import HostMonitor, random_jitter


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.data.blocks.window import BlockWindowCache
    from src.helpers.config_models import HostConfig, WatchdogConfig
    from src.monitor.context import WatchdogContext
    from src.monitor.host import HostState


logger = get_logger(__name__)


class FleetOrchestrator:
    """Owns one HostMonitor per configured host."""

    def __init__(
        self,
        context: WatchdogContext,
        *,
        reload_poll_interval: float = RELOAD_POLL_INTERVAL,
        reload_max_attempts: int = RELOAD_MAX_ATTEMPTS,
        jitter: Callable[[], Awaitable[None]] = random_jitter,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            context: Shared resources and configuration
            reload_poll_interval: Seconds between two quiescence checks
            reload_max_attempts: Quiescence checks before a reload fails
            jitter: Delay passed to every host monitor
        """
        self.context = context
        self.reload_poll_interval = reload_poll_interval
        self.reload_max_attempts = reload_max_attempts
        self.jitter = jitter

        self.monitors: dict[str, HostMonitor] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._background: set[asyncio.Task[None]] = set()
        self._lock = asyncio.Lock()

    async def start(self, config: WatchdogConfig | None = None) -> None:
        """Build a monitor for every host and launch their loops.

        Raises:
            WatchdogError: If any host client could not be built; nothing
                is launched in that case
        """
        if config is not None and config is not self.context.config:
            self.context.apply_config(config)
        async with self._lock:
            await self._launch()

    async def _build_monitor(self, host: HostConfig, block_cache: BlockWindowCache) -> HostMonitor:
        try:
            runtime = self.context.runtime_factory(host)
        except (OSError, ValueError) as e:
            msg = f"failed to create container runtime client for {host.ip}: {e}"
            raise WatchdogError(msg) from e

        try:
            chain = self.context.chain_factory()
        except ValueError as e:
            await runtime.close()
            msg = f"failed to create chain client for {host.ip}: {e}"
            raise WatchdogError(msg) from e

        return HostMonitor(
            host.ip,
            runtime,
            ChainStatReader(chain, block_cache),
            self.context.dispatcher,
            block_cache,
            jitter=self.jitter,
        )

    async def _launch(self) -> None:
        config = self.context.config
        block_cache = await self.context.ensure_block_cache()

        results = await asyncio.gather(
            *(self._build_monitor(host, block_cache) for host in config.hosts),
            return_exceptions=True,
        )
        monitors = [result for result in results if isinstance(result, HostMonitor)]
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            for monitor in monitors:
                async with log_and_suppress_errors(f"close clients of {monitor.host}"):
                    await monitor.close()
            msg = "; ".join(str(error) for error in errors)
            raise WatchdogError(f"failed to initialize host clients: {msg}")

        self.monitors = {monitor.host: monitor for monitor in monitors}
        logger.info("Init all watchdog clients successfully (%d hosts)", len(self.monitors))

        for host, monitor in self.monitors.items():
            self._tasks[host] = asyncio.create_task(
                monitor.run_forever(config.scrape_interval), name=f"monitor-{host}"
            )

    def _any_updating(self) -> bool:
        return any(monitor.is_updating for monitor in self.monitors.values())

    async def _wait_until_quiescent(self) -> None:
        for attempt in range(1, self.reload_max_attempts + 1):
            if not self._any_updating():
                return
            logger.info(
                "Waiting for host cycles to finish before reloading (attempt %d/%d)",
                attempt,
                self.reload_max_attempts,
            )
            await asyncio.sleep(self.reload_poll_interval)

        if self._any_updating():
            msg = f"hosts still collecting after {self.reload_max_attempts} checks"
            raise ReloadError(msg)

    async def _retire_monitors(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()

        for monitor in self.monitors.values():
            async with log_and_suppress_errors(f"close clients of {monitor.host}"):
                await monitor.close()
        self.monitors = {}

    async def reload(self, timeout: float | None = None) -> None:
        """Stop the monitors, wait for quiescence, reload config and relaunch.

        Args:
            timeout: Deadline for quiescence in seconds; defaults to the
                scrape interval, capped at one hour

        Raises:
            ReloadError: If the deadline or the attempt budget runs out, or
                the configuration cannot be loaded. Monitors stay stopped.
        """
        if timeout is None:
            timeout = min(float(self.context.config.scrape_interval), MAX_RELOAD_TIMEOUT)

        for monitor in self.monitors.values():
            monitor.deactivate()

        try:
            async with asyncio.timeout(timeout):
                await self._wait_until_quiescent()
        except TimeoutError as e:
            msg = f"timed out after {timeout}s waiting for host cycles to finish"
            raise ReloadError(msg) from e

        try:
            config = load_config(self.context.config_path)
        except ConfigError as e:
            raise ReloadError(str(e)) from e

        async with self._lock:
            await self._retire_monitors()
            self.context.apply_config(config)
            await self._launch()
        await self.context.release_retired_dispatchers()
        logger.info("Configuration reloaded")

    async def _reload_logged(self) -> None:
        try:
            await self.reload()
        except WatchdogError:
            logger.exception("Failed to reload configuration, monitors are stopped")

    def replace_config(self, new_config: WatchdogConfig) -> asyncio.Task[None]:
        """Persist a new configuration and reload in the background.

        Raises:
            ConfigError: If the configuration file cannot be rewritten
        """
        save_config(self.context.config_path, new_config, self.context.config)
        task = asyncio.create_task(self._reload_logged(), name="config-reload")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    @property
    def alert_enabled(self) -> bool:
        return self.context.dispatcher.enabled

    def set_alert_enabled(self, enabled: bool) -> None:
        """Toggle alerting now and persist the switch to the configuration file."""
        save_alert_toggle(self.context.config_path, enabled)
        self.context.config.alert.enable = enabled
        self.context.dispatcher.enabled = enabled

    def hosts(self) -> list[str]:
        return sorted(self.monitors)

    async def miners(self, host: str | None = None) -> list[HostState]:
        """Snapshots of every host (or only ``host``), sorted by host."""
        monitors = [
            monitor
            for name, monitor in sorted(self.monitors.items())
            if host is None or name == host
        ]
        return list(await asyncio.gather(*(monitor.snapshot() for monitor in monitors)))

    def clients_status(self) -> dict[str, dict[str, bool]]:
        """Active and collecting flags of every host, sorted by host."""
        return {
            host: {"active": monitor.active, "updating": monitor.is_updating}
            for host, monitor in sorted(self.monitors.items())
        }

    def redacted_config(self) -> dict[str, Any]:
        return redact_config(self.context.config)

    async def stop(self) -> None:
        """Stop every monitor and release all clients."""
        for monitor in self.monitors.values():
            monitor.deactivate()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        async with self._lock:
            await self._retire_monitors()
        await self.context.close()
        logger.info("Fleet stopped")


__all__ = ["FleetOrchestrator"]
