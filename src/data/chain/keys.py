"""Derive a miner's on-chain identity from its signing mnemonic."""

from substrateinterface import Keypair

from src.helpers.constants import CESS_SS58_FORMAT


def derive_account(mnemonic: str, ss58_format: int = CESS_SS58_FORMAT) -> str:
    """Return the SS58 signature account of an sr25519 mnemonic.

    Args:
        mnemonic: BIP39 mnemonic read from the miner configuration
        ss58_format: Address prefix of the network

    Returns:
        str: SS58 encoded account

    Raises:
        ValueError: If the mnemonic is empty or invalid
    """
    if not mnemonic or not mnemonic.strip():
        msg = "mnemonic is empty"
        raise ValueError(msg)
    keypair = Keypair.create_from_mnemonic(mnemonic.strip(), ss58_format=ss58_format)
    return keypair.ss58_address


__all__ = ["derive_account"]
