"""Chain query capability and its Substrate RPC implementation."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from substrateinterface import SubstrateInterface
from substrateinterface.utils.ss58 import ss58_decode

from src.data.blocks.parser import parse_block
from src.data.chain.models import MinerChainInfo, RewardInfo
from src.helpers.constants import CESS_SS58_FORMAT, DEFAULT_RPC_URL, LOCAL_RPC_URL
from src.helpers.errors import ChainQueryError
from src.helpers.logging import get_logger
from src.helpers.parsers import parse_int


if TYPE_CHECKING:
    from collections.abc import Callable

    from src.data.blocks.models import BlockRecord


logger = get_logger(__name__)

T = TypeVar("T")


class ChainQuery(Protocol):
    """What the monitoring engine needs from the chain.

    Implementations raise ChainQueryError for every failure.
    """

    def public_key_of(self, account: str) -> bytes: ...

    async def current_block_height(self) -> int: ...

    async def block_by_number(self, number: int) -> BlockRecord: ...

    async def miner_info(self, public_key: bytes) -> MinerChainInfo: ...

    async def reward_info(self, public_key: bytes) -> RewardInfo: ...

    async def close(self) -> None: ...


def _decode_state(state: Any) -> str:
    if isinstance(state, bytes):
        return state.decode("utf-8", errors="replace")
    text = str(state or "")
    if text.startswith("0x"):
        try:
            return bytes.fromhex(text[2:]).decode("utf-8", errors="replace")
        except ValueError:
            return text
    return text


def miner_info_from_value(value: dict[str, Any] | None) -> MinerChainInfo:
    """Convert a decoded ``Sminer.MinerItems`` entry.

    Raises:
        ValueError: If the account has no miner entry
    """
    if not value:
        msg = "account is not registered as a storage miner"
        raise ValueError(msg)
    return MinerChainInfo(
        state=_decode_state(value.get("state")),
        collaterals=parse_int(value.get("collaterals")),
        debt=parse_int(value.get("debt")),
        declaration_space=parse_int(value.get("declaration_space")),
        idle_space=parse_int(value.get("idle_space")),
        service_space=parse_int(value.get("service_space")),
        lock_space=parse_int(value.get("lock_space")),
    )


def reward_info_from_value(value: dict[str, Any] | None) -> RewardInfo:
    """Convert a decoded ``Sminer.RewardMap`` entry (missing entry is zero)."""
    if not value:
        return RewardInfo()
    return RewardInfo(
        total_reward=parse_int(value.get("total_reward")),
        reward_issued=parse_int(value.get("reward_issued")),
    )


class SubstrateChainClient:
    """ChainQuery backed by substrate-interface.

    The underlying connection is blocking and not thread safe, so every call
    runs in a worker thread under one lock. RPC endpoints are tried in order;
    a failed call drops the connection and the next call reconnects.
    """

    def __init__(
        self,
        rpc_urls: list[str] | None = None,
        ss58_format: int = CESS_SS58_FORMAT,
    ) -> None:
        """Initialize the chain client.

        Args:
            rpc_urls: WebSocket endpoints tried in order
            ss58_format: Address prefix of the network

        Raises:
            ValueError: If no RPC URL is given
        """
        self.rpc_urls = rpc_urls or [LOCAL_RPC_URL, DEFAULT_RPC_URL]
        if not all(self.rpc_urls):
            msg = "RPC URL cannot be empty"
            raise ValueError(msg)
        self.ss58_format = ss58_format
        self.current_url: str | None = None
        self._substrate: SubstrateInterface | None = None
        self._lock = threading.Lock()

    def _connect(self) -> SubstrateInterface:
        if self._substrate is not None:
            return self._substrate

        errors: list[str] = []
        for url in self.rpc_urls:
            try:
                self._substrate = SubstrateInterface(url=url, ss58_format=self.ss58_format)
            except Exception as e:
                logger.warning("Failed to connect to chain RPC %s: %s", url, e)
                errors.append(f"{url}: {e}")
                continue
            self.current_url = url
            logger.info("Connected to chain RPC %s", url)
            return self._substrate

        msg = "no chain RPC reachable (" + "; ".join(errors) + ")"
        raise ConnectionError(msg)

    def _disconnect(self) -> None:
        if self._substrate is not None:
            try:
                self._substrate.close()
            except Exception as e:
                logger.debug("Error closing chain connection: %s", e)
        self._substrate = None
        self.current_url = None

    def _locked_call(self, func: Callable[[SubstrateInterface], T]) -> T:
        with self._lock:
            try:
                return func(self._connect())
            except Exception:
                self._disconnect()
                raise

    async def _run(self, stage: str, func: Callable[[SubstrateInterface], T]) -> T:
        try:
            return await asyncio.to_thread(self._locked_call, func)
        except ChainQueryError:
            raise
        except Exception as e:
            raise ChainQueryError(stage, str(e)) from e

    def public_key_of(self, account: str) -> bytes:
        """Decode an SS58 account into its public key.

        Raises:
            ChainQueryError: If the account is not valid SS58
        """
        try:
            return bytes.fromhex(ss58_decode(account, valid_ss58_format=self.ss58_format))
        except (ValueError, TypeError) as e:
            raise ChainQueryError("public_key", f"invalid account {account}: {e}") from e

    async def current_block_height(self) -> int:
        return await self._run(
            "block_height",
            lambda substrate: int(substrate.get_block_number(substrate.get_chain_head())),
        )

    async def block_by_number(self, number: int) -> BlockRecord:
        def fetch(substrate: SubstrateInterface) -> BlockRecord:
            block_hash = substrate.get_block_hash(number)
            if block_hash is None:
                msg = f"block {number} not found"
                raise ValueError(msg)
            block = substrate.get_block(block_hash=block_hash)
            events = substrate.get_events(block_hash=block_hash)
            return parse_block(
                number,
                block_hash,
                [extrinsic.value for extrinsic in block.get("extrinsics", [])],
                [event.value for event in events],
            )

        return await self._run("block", fetch)

    async def miner_info(self, public_key: bytes) -> MinerChainInfo:
        return await self._run(
            "miner_info",
            lambda substrate: miner_info_from_value(
                substrate.query("Sminer", "MinerItems", ["0x" + public_key.hex()]).value
            ),
        )

    async def reward_info(self, public_key: bytes) -> RewardInfo:
        return await self._run(
            "reward",
            lambda substrate: reward_info_from_value(
                substrate.query("Sminer", "RewardMap", ["0x" + public_key.hex()]).value
            ),
        )

    async def close(self) -> None:
        await asyncio.to_thread(self._close_locked)

    def _close_locked(self) -> None:
        with self._lock:
            self._disconnect()


__all__ = [
    "ChainQuery",
    "SubstrateChainClient",
    "miner_info_from_value",
    "reward_info_from_value",
]
