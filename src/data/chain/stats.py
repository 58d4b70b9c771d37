"""Translate a miner account into its current chain status."""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.data.chain.models import ChainReading, ChainStat, MinerChainInfo, RewardInfo
from src.helpers.logging import get_logger
from src.helpers.parsers import format_space, planck_to_token


if TYPE_CHECKING:
    from src.data.blocks.window import BlockWindowCache
    from src.data.chain.client import ChainQuery


logger = get_logger(__name__)


def build_chain_stat(info: MinerChainInfo, reward: RewardInfo) -> ChainStat:
    """Scale raw chain values into a ChainStat (without punishments)."""
    return ChainStat(
        status=info.state,
        collaterals=planck_to_token(info.collaterals),
        debt=planck_to_token(info.debt),
        declaration_space=format_space(info.declaration_space),
        idle_space=format_space(info.idle_space),
        service_space=format_space(info.service_space),
        lock_space=format_space(info.lock_space),
        total_reward=planck_to_token(reward.total_reward),
        reward_issued=planck_to_token(reward.reward_issued),
    )


class ChainStatReader:
    """Stateless query facade over a ChainQuery and the block window."""

    def __init__(self, chain: ChainQuery, block_cache: BlockWindowCache) -> None:
        self.chain = chain
        self.block_cache = block_cache

    async def read(self, account: str) -> ChainReading:
        """Read status, balances, space, rewards and punishments of a miner.

        Args:
            account: SS58 signature account

        Returns:
            ChainReading: The stat and the chain height it was read at

        Raises:
            ChainQueryError: With the stage (public_key, miner_info,
                block_height, reward) that failed
        """
        public_key = self.chain.public_key_of(account)
        info = await self.chain.miner_info(public_key)
        height = await self.chain.current_block_height()
        reward = await self.chain.reward_info(public_key)

        stat = build_chain_stat(info, reward)
        stat.punishments = self.block_cache.punishments_for(account)
        logger.debug(
            "Read chain stat of %s at block %s: status=%s", account, height, stat.status
        )
        return ChainReading(stat=stat, block_height=height)


__all__ = [
    "ChainStatReader",
    "build_chain_stat",
]
