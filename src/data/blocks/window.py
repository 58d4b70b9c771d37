"""Bounded sliding window of recent blocks used to correlate punishments.

The window keeps the most recent ``N`` blocks, where ``N`` is the scrape
interval divided by the average block interval. It is back-filled once at
startup and then extended by a poller that follows the chain head:

1. ``initialize()`` fetches ``[head - N + 1, head]``
2. ``poll()`` fetches every block above the last seen head
3. ``push()`` appends a block, evicting the oldest one at capacity

A punishment is only visible while its block is resident in the window.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque

from typing import TYPE_CHECKING

from src.helpers.constants import BLOCK_INTERVAL, BLOCK_POLL_INTERVAL
from src.helpers.errors import ChainQueryError
from src.helpers.logging import get_logger
from src.helpers.progress import track_progress


if TYPE_CHECKING:
    from rich.console import Console

    from src.data.blocks.models import BlockRecord, PunishmentEvent
    from src.data.chain.client import ChainQuery


logger = get_logger(__name__)


def window_size_for(scrape_interval: int, block_interval: int = BLOCK_INTERVAL) -> int:
    """Number of blocks produced during one scrape interval (at least 1)."""
    return max(1, scrape_interval // block_interval)


class BlockWindowCache:
    """FIFO window of BlockRecords shared by all host monitors."""

    def __init__(
        self,
        chain: ChainQuery,
        max_size: int,
        *,
        poll_interval: float = BLOCK_POLL_INTERVAL,
        console: Console | None = None,
    ) -> None:
        """Initialize an empty window.

        Args:
            chain: Chain query capability used to fetch blocks
            max_size: Maximum number of resident blocks
            poll_interval: Seconds between two head queries
            console: Console for the back-fill progress bar (optional)

        Raises:
            ValueError: If max_size is not positive
        """
        if max_size < 1:
            msg = "Window size must be at least 1"
            raise ValueError(msg)

        self.chain = chain
        self.max_size = max_size
        self.poll_interval = poll_interval
        self.console = console

        self._blocks: deque[BlockRecord] = deque()
        self._numbers: set[int] = set()
        self._lock = threading.Lock()
        self._init_lock = asyncio.Lock()
        self._poll_task: asyncio.Task[None] | None = None

        self.latest_block: int | None = None
        self.active = True
        self.initialized = False

    @classmethod
    def for_interval(
        cls,
        chain: ChainQuery,
        scrape_interval: int,
        *,
        poll_interval: float = BLOCK_POLL_INTERVAL,
        console: Console | None = None,
    ) -> BlockWindowCache:
        """Create a window sized for one scrape interval."""
        return cls(
            chain,
            window_size_for(scrape_interval),
            poll_interval=poll_interval,
            console=console,
        )

    def push(self, record: BlockRecord) -> bool:
        """Append a block, evicting the oldest one when the window is full.

        Blocks that are not newer than the newest resident block are
        rejected so numbers stay strictly increasing.

        Args:
            record: Block to append

        Returns:
            bool: True if the block was appended
        """
        with self._lock:
            if self._blocks and record.number <= self._blocks[-1].number:
                logger.debug(
                    "Ignoring block %s, window already holds up to %s",
                    record.number,
                    self._blocks[-1].number,
                )
                return False

            if len(self._blocks) >= self.max_size:
                evicted = self._blocks.popleft()
                self._numbers.discard(evicted.number)
                logger.debug("Removed oldest block %s from window", evicted.number)

            self._blocks.append(record)
            self._numbers.add(record.number)
            return True

    def snapshot(self) -> list[BlockRecord]:
        """Return a copy of the resident blocks, oldest first."""
        with self._lock:
            return list(self._blocks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blocks)

    def __contains__(self, number: object) -> bool:
        with self._lock:
            return number in self._numbers

    def punishments_for(self, account: str) -> list[PunishmentEvent]:
        """Return every resident punishment charged to ``account``."""
        return [
            punishment
            for block in self.snapshot()
            for punishment in block.punishments
            if punishment.account == account
        ]

    def status(self) -> tuple[int, int, int]:
        """Return (size, oldest block number, newest block number)."""
        with self._lock:
            if not self._blocks:
                return 0, 0, 0
            return len(self._blocks), self._blocks[0].number, self._blocks[-1].number

    async def _fetch_range(self, start: int, end: int, description: str) -> int:
        """Fetch and push blocks ``start..end``; returns how many were added."""
        added = 0
        with track_progress(description, total=end - start + 1, console=self.console) as (
            progress,
            task,
        ):
            for number in range(start, end + 1):
                if not self.active:
                    break
                try:
                    record = await self.chain.block_by_number(number)
                except ChainQueryError as e:
                    logger.warning("Failed to parse block data for block %s: %s", number, e)
                else:
                    if self.push(record):
                        added += 1
                progress.update(task, advance=1)
        return added

    async def initialize(self) -> None:
        """Back-fill the window up to the current head.

        Runs once; later calls return immediately. Individual blocks that
        fail to parse are skipped. A failing head query leaves the window
        empty and the poller back-fills on its first successful query.
        """
        async with self._init_lock:
            if self.initialized:
                return

            try:
                head = await self.chain.current_block_height()
            except ChainQueryError as e:
                logger.warning("Error during initial window population: %s", e)
                self.initialized = True
                return

            start = max(1, head - self.max_size + 1)
            logger.info("Init block window with the latest block number: %s", head)
            added = await self._fetch_range(start, head, "Back-filling block window")
            self.latest_block = head
            self.initialized = True
            logger.info(
                "Initial window population complete with %s blocks from %s to %s",
                added,
                start,
                head,
            )

    async def poll_once(self) -> None:
        """Query the head once and ingest every block above the last seen one."""
        try:
            head = await self.chain.current_block_height()
        except ChainQueryError as e:
            logger.warning("Failed to query latest block number: %s", e)
            return

        if self.latest_block is None:
            start = max(1, head - self.max_size + 1)
        elif head > self.latest_block:
            start = self.latest_block + 1
        else:
            return

        for number in range(start, head + 1):
            if not self.active:
                return
            try:
                record = await self.chain.block_by_number(number)
            except ChainQueryError as e:
                logger.warning("Failed to process new block %s: %s", number, e)
                continue
            self.push(record)
            if number % 10 == 0:
                logger.info("Saved block data, current block num %s", number)

        self.latest_block = head

    async def poll(self) -> None:
        """Follow the chain head until deactivated."""
        while not self.initialized and self.active:
            logger.info("Waiting for initial window population to complete...")
            await asyncio.sleep(BLOCK_INTERVAL)

        while self.active:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    def start_polling(self) -> asyncio.Task[None]:
        """Start the poller as a background task (idempotent)."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self.poll(), name="block-window-poller")
        return self._poll_task

    async def stop(self) -> None:
        """Stop polling and wait for the poller to exit."""
        self.active = False
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                logger.debug("Block window poller cancelled")
        self._poll_task = None

    async def close(self) -> None:
        """Stop polling and release the chain client."""
        await self.stop()
        await self.chain.close()


__all__ = [
    "BlockWindowCache",
    "window_size_for",
]
