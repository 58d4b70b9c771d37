"""Per-host monitoring of storage miner containers.

One HostMonitor owns the miner registry of one host. Each cycle:

1. Waits a random jitter
2. Lists containers and keeps the ones running the miner image
3. Drops registry entries whose container is gone
4. Registers new containers by reading their configuration (concurrently)
5. Refreshes container stats (concurrently)
6. Refreshes chain status one miner at a time, each after a jitter,
   and raises alerts
7. Logs every error collected along the way

A failure for one miner never stops the cycle for the others.
"""

from __future__ import annotations

import asyncio
import random
import time

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from src.alerts.dispatcher import alert_time
from src.alerts.models import AlertEvent
from src.data.chain.keys import derive_account
from src.data.chain.models import ChainStat
from src.data.containers.models import ContainerInfo, MinerConfigFile
from src.helpers.constants import (
    ERROR_QUEUE_SIZE,
    JITTER_MAX_SECONDS,
    JITTER_MIN_SECONDS,
    MINER_CONFIG_COMMAND,
    MINER_IMAGE,
    POSITIVE_STATUS,
    SCAN_ACCOUNT_URL,
    SCAN_BLOCK_URL,
    STATUS_GRACE_PERIOD,
)
from src.helpers.errors import (
    ChainQueryError,
    ContainerRuntimeError,
    MinerConfigError,
    WatchdogError,
)
from src.helpers.logging import get_logger
from src.helpers.parsers import strip_stream_header


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.alerts.dispatcher import AlertDispatcher
    from src.data.blocks.window import BlockWindowCache
    from src.data.chain.models import ChainReading
    from src.data.chain.stats import ChainStatReader
    from src.data.containers.client import ContainerRuntime


logger = get_logger(__name__)


class MinerRecord(BaseModel):
    """Everything known about one miner on a host."""

    signature_acc: str
    container: ContainerInfo
    conf: MinerConfigFile
    stat: ChainStat = Field(default_factory=ChainStat)


class HostState(BaseModel):
    """Point-in-time copy of a host monitor, safe to hand to readers."""

    host: str
    active: bool
    updating: bool
    miners: list[MinerRecord] = Field(default_factory=list)


async def random_jitter() -> None:
    """Sleep a random 1-10 seconds to spread load across hosts."""
    await asyncio.sleep(random.randint(JITTER_MIN_SECONDS, JITTER_MAX_SECONDS))  # noqa: S311


class HostMonitor:
    """Collects container, chain and punishment data for the miners of one host."""

    def __init__(
        self,
        host: str,
        runtime: ContainerRuntime,
        reader: ChainStatReader,
        dispatcher: AlertDispatcher,
        block_cache: BlockWindowCache,
        *,
        jitter: Callable[[], Awaitable[None]] = random_jitter,
        clock: Callable[[], float] = time.time,
        account_from_mnemonic: Callable[[str], str] = derive_account,
    ) -> None:
        """Initialize the monitor.

        Args:
            host: Host address, used in logs and alerts
            runtime: Container runtime of the host
            reader: Chain status reader
            dispatcher: Alert dispatcher
            block_cache: Shared block window (latest block number for alerts)
            jitter: Awaitable delay applied before cycles and chain queries
            clock: Returns the current unix time
            account_from_mnemonic: Derives the signature account of a miner
        """
        self.host = host
        self.runtime = runtime
        self.reader = reader
        self.dispatcher = dispatcher
        self.block_cache = block_cache
        self.jitter = jitter
        self.clock = clock
        self.account_from_mnemonic = account_from_mnemonic

        self.registry: dict[str, MinerRecord] = {}
        self.active = True
        self.updating = False
        self._lock = asyncio.Lock()

    @property
    def is_updating(self) -> bool:
        return self.updating

    def deactivate(self) -> None:
        """Stop future cycles; a cycle in progress runs to completion."""
        self.active = False

    async def close(self) -> None:
        """Release the container runtime and chain clients of this host."""
        self.deactivate()
        await self.runtime.close()
        await self.reader.chain.close()

    async def snapshot(self) -> HostState:
        """Deep copy of the registry with mnemonics redacted."""
        async with self._lock:
            miners = [
                record.model_copy(update={"conf": record.conf.redacted()}, deep=True)
                for record in self.registry.values()
            ]
        return HostState(
            host=self.host,
            active=self.active,
            updating=self.updating,
            miners=sorted(miners, key=lambda record: record.container.name),
        )

    async def run_forever(self, interval: float) -> None:
        """Run cycles every ``interval`` seconds until deactivated."""
        logger.info("Start to run task at host: %s", self.host)
        while self.active:
            try:
                await self.run_cycle()
            except WatchdogError as e:
                logger.warning("Error when running %s watchdog cycle: %s", self.host, e)
            except Exception:
                logger.exception("Unexpected error in %s watchdog cycle", self.host)
            if not self.active:
                break
            await asyncio.sleep(interval)
        logger.info("Monitoring task of host %s stopped", self.host)

    async def run_cycle(self) -> bool:
        """Run one collection cycle.

        Returns:
            bool: False if skipped (another cycle running) or the container
            list could not be read, True otherwise
        """
        if self.updating:
            logger.info("Host %s is still collecting, skipping this cycle", self.host)
            return False
        self.updating = True

        errors: asyncio.Queue[WatchdogError | None] = asyncio.Queue(maxsize=ERROR_QUEUE_SIZE)
        drain = asyncio.create_task(self._log_errors(errors))
        try:
            await self.jitter()
            try:
                containers = await self.runtime.list_containers()
            except ContainerRuntimeError as e:
                logger.error("Error when listing %s containers: %s", self.host, e)
                return False

            miners = [container for container in containers if MINER_IMAGE in container.image]
            await self._reconcile({container.id for container in miners})

            await asyncio.gather(*(self._register(container, errors) for container in miners))

            async with self._lock:
                records = list(self.registry.values())

            await asyncio.gather(*(self._refresh_stats(record, errors) for record in records))

            for record in records:
                await self.jitter()
                await self._refresh_chain(record, errors)

            return True
        finally:
            await errors.put(None)
            await drain
            self.updating = False

    async def _log_errors(self, errors: asyncio.Queue[WatchdogError | None]) -> None:
        while (error := await errors.get()) is not None:
            logger.error("Error when %s task run: %s", self.host, error)

    async def _reconcile(self, running_ids: set[str]) -> None:
        async with self._lock:
            for account, record in list(self.registry.items()):
                if record.container.id not in running_ids:
                    logger.info(
                        "Miner %s on host: %s has been stopped or removed, delete it from current task",
                        account,
                        self.host,
                    )
                    del self.registry[account]

    async def _is_registered(self, container_id: str) -> bool:
        async with self._lock:
            return any(record.container.id == container_id for record in self.registry.values())

    async def _register(
        self, container: ContainerInfo, errors: asyncio.Queue[WatchdogError | None]
    ) -> None:
        if await self._is_registered(container.id):
            return

        try:
            raw = await self.runtime.exec_in_container(container.id, MINER_CONFIG_COMMAND)
        except ContainerRuntimeError as e:
            await errors.put(e)
            return

        try:
            conf = MinerConfigFile.from_yaml(strip_stream_header(raw))
        except MinerConfigError as e:
            description = (
                f"Failed to parse storage node config file for container {container.id}: "
                f"{e} on host: {self.host}"
            )
            self.dispatcher.submit(
                AlertEvent(
                    alert_time=alert_time(),
                    host=self.host,
                    description=description,
                    container_id=container.id,
                    container_name=container.name,
                    block_number=self.block_cache.latest_block or 0,
                )
            )
            await errors.put(e)
            return

        try:
            account = self.account_from_mnemonic(conf.chain.mnemonic)
        except ValueError as e:
            await errors.put(
                MinerConfigError(f"failed to derive account of container {container.name}: {e}")
            )
            return

        async with self._lock:
            self.registry[account] = MinerRecord(
                signature_acc=account, container=container, conf=conf
            )
        logger.info("Registered miner %s (%s) on host %s", account, container.name, self.host)

    async def _refresh_stats(
        self, record: MinerRecord, errors: asyncio.Queue[WatchdogError | None]
    ) -> None:
        try:
            stats = await self.runtime.container_stats(record.container.id)
        except ContainerRuntimeError as e:
            await errors.put(e)
            return
        async with self._lock:
            record.container.merge_stats(stats)

    async def _refresh_chain(
        self, record: MinerRecord, errors: asyncio.Queue[WatchdogError | None]
    ) -> None:
        try:
            reading = await self.reader.read(record.signature_acc)
        except ChainQueryError as e:
            await errors.put(e)
            return

        async with self._lock:
            if record.signature_acc not in self.registry:
                logger.error(
                    "Miner %s is no longer registered on host %s, dropping its chain data",
                    record.signature_acc,
                    self.host,
                )
                return
            record.stat = reading.stat

        for event in self.evaluate_alerts(record, reading):
            logger.warning("Alert for %s on host %s: %s", record.signature_acc, self.host, event.description)
            self.dispatcher.submit(event)

    def evaluate_alerts(self, record: MinerRecord, reading: ChainReading) -> list[AlertEvent]:
        """Alerts raised by a fresh chain reading of ``record``.

        A non-positive status is alerted once the container is older than
        the grace period. Every punishment still inside the block window is
        alerted, so it is alerted again each cycle until it leaves the window.
        """
        events: list[AlertEvent] = []
        now = alert_time()
        account = record.signature_acc
        stat = reading.stat

        age = self.clock() - record.container.created
        if stat.status != POSITIVE_STATUS and age > STATUS_GRACE_PERIOD:
            events.append(
                AlertEvent(
                    alert_time=now,
                    host=self.host,
                    description=(
                        f"Host: {self.host}, The Status of Storage Node {account} "
                        f"on chain is not a positive status ({stat.status or 'unknown'})"
                    ),
                    detail_url=SCAN_ACCOUNT_URL + account,
                    signature_acc=account,
                    container_name=record.container.name,
                    block_number=reading.block_height,
                )
            )

        for punishment in stat.punishments:
            events.append(
                AlertEvent(
                    alert_time=now,
                    host=self.host,
                    description=f"{account} get punishment at block {punishment.block_id}",
                    detail_url=SCAN_BLOCK_URL + str(punishment.block_id),
                    signature_acc=account,
                    container_name=record.container.name,
                    block_number=punishment.block_id,
                )
            )
        return events


__all__ = [
    "HostMonitor",
    "HostState",
    "MinerRecord",
    "random_jitter",
]
