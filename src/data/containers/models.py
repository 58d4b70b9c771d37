"""Pydantic models for miner containers and their in-container configuration."""

from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from src.helpers.errors import MinerConfigError


class ContainerStats(BaseModel):
    """Resource usage sample of one container."""

    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_usage: int = 0


class ContainerInfo(BaseModel):
    """A running container as listed by the container runtime."""

    id: str
    name: str
    image: str
    created: int = Field(..., description="Creation time in unix seconds")
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_usage: int = 0

    def merge_stats(self, stats: ContainerStats) -> None:
        """Copy a fresh stats sample into this record."""
        self.cpu_percent = stats.cpu_percent
        self.memory_percent = stats.memory_percent
        self.memory_usage = stats.memory_usage


class MinerChainSection(BaseModel):
    """``chain`` section of the miner configuration."""

    mnemonic: str = Field(
        default="", validation_alias=AliasChoices("mnemonic", "Mnemonic")
    )
    rpcs: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("rpcs", "Rpc", "rpc")
    )
    timeout: int | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class MinerConfigFile(BaseModel):
    """Configuration file of a storage miner (``/opt/miner/config.yaml``).

    Both the current lowercase layout (``app``/``chain`` sections) and the
    older flat layout (``Name``, ``Port``, ``Chain.Mnemonic``) are accepted.
    """

    name: str = Field(default="", validation_alias=AliasChoices("name", "Name"))
    port: int | None = Field(default=None, validation_alias=AliasChoices("port", "Port"))
    earnings_acc: str = Field(
        default="", validation_alias=AliasChoices("earningsAcc", "EarningsAcc")
    )
    staking_acc: str = Field(
        default="", validation_alias=AliasChoices("stakingAcc", "StakingAcc")
    )
    app: dict[str, Any] = Field(default_factory=dict)
    chain: MinerChainSection = Field(
        default_factory=MinerChainSection, validation_alias=AliasChoices("chain", "Chain")
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @classmethod
    def from_yaml(cls, payload: bytes | str) -> "MinerConfigFile":
        """Parse the raw configuration read from a container.

        Args:
            payload: YAML document without the stream header

        Returns:
            Parsed configuration

        Raises:
            MinerConfigError: If the document is not YAML, not a mapping,
                or has no mnemonic
        """
        try:
            raw = yaml.safe_load(payload)
        except yaml.YAMLError as e:
            msg = f"invalid YAML: {e}"
            raise MinerConfigError(msg) from e

        if not isinstance(raw, dict):
            msg = "configuration is not a mapping"
            raise MinerConfigError(msg)

        try:
            conf = cls.model_validate(raw)
        except ValidationError as e:
            msg = f"invalid configuration: {e}"
            raise MinerConfigError(msg) from e

        if not conf.chain.mnemonic:
            msg = "chain mnemonic is missing"
            raise MinerConfigError(msg)
        return conf

    def redacted(self) -> "MinerConfigFile":
        """Copy with the mnemonic replaced by ``-``."""
        conf = self.model_copy(deep=True)
        conf.chain.mnemonic = "-"
        return conf


__all__ = [
    "ContainerInfo",
    "ContainerStats",
    "MinerChainSection",
    "MinerConfigFile",
]
