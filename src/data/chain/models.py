"""Pydantic models for on-chain miner data."""

from pydantic import BaseModel, Field

from src.data.blocks.models import PunishmentEvent


class MinerChainInfo(BaseModel):
    """Raw miner entry as stored on chain (integers unscaled)."""

    state: str
    collaterals: int = 0
    debt: int = 0
    declaration_space: int = 0
    idle_space: int = 0
    service_space: int = 0
    lock_space: int = 0


class RewardInfo(BaseModel):
    """Raw reward entry of a miner (u128 amounts)."""

    total_reward: int = 0
    reward_issued: int = 0


class ChainStat(BaseModel):
    """Human readable chain status of a miner, recomputed every cycle."""

    status: str = ""
    collaterals: str = ""
    debt: str = ""
    declaration_space: str = ""
    idle_space: str = ""
    service_space: str = ""
    lock_space: str = ""
    total_reward: str = ""
    reward_issued: str = ""
    punishments: list[PunishmentEvent] = Field(default_factory=list)


class ChainReading(BaseModel):
    """A ChainStat together with the chain height it was read at."""

    stat: ChainStat
    block_height: int


__all__ = [
    "ChainReading",
    "ChainStat",
    "MinerChainInfo",
    "RewardInfo",
]
