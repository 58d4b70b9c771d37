"""Pydantic models for chain blocks and the punishments they carry."""

from pydantic import BaseModel, ConfigDict


class PunishmentEvent(BaseModel):
    """A penalty transfer charged to a miner, as observed in one block."""

    account: str
    recv_account: str
    extrinsic_hash: str
    extrinsic_name: str
    amount: str
    block_id: int
    block_hash: str
    timestamp: int

    model_config = ConfigDict(frozen=True)


class BlockRecord(BaseModel):
    """A fetched block reduced to what punishment correlation needs."""

    number: int
    hash: str
    timestamp: int
    punishments: tuple[PunishmentEvent, ...] = ()

    model_config = ConfigDict(frozen=True)


__all__ = [
    "BlockRecord",
    "PunishmentEvent",
]
