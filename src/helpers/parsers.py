"""Parsing utilities for common data transformations."""

from decimal import Decimal, localcontext

from src.helpers.constants import (
    SIZE_EIB,
    SIZE_GIB,
    SIZE_KIB,
    SIZE_MIB,
    SIZE_PIB,
    SIZE_TIB,
    STREAM_HEADER_SIZE,
    TOKEN_DECIMALS,
)

_UINT64_LIMIT = 2**64

_SPACE_UNITS = (
    (SIZE_EIB, "EiB"),
    (SIZE_PIB, "PiB"),
    (SIZE_TIB, "TiB"),
    (SIZE_GIB, "GiB"),
    (SIZE_MIB, "MiB"),
    (SIZE_KIB, "KiB"),
)


def planck_to_token(value: int | None) -> str:
    """Convert an on-chain integer amount to a decimal token string.

    Args:
        value: Amount scaled by 10^18, or None

    Returns:
        str: Amount with 4 decimal places, empty string if value is None

    Example:
        >>> planck_to_token(1_500_000_000_000_000_000)
        '1.5000'
        >>> planck_to_token(0)
        '0.0000'
    """
    if value is None:
        return ""
    # u128 amounts need more than the default 28 significant digits
    with localcontext() as ctx:
        ctx.prec = 60
        amount = Decimal(value) / Decimal(10**TOKEN_DECIMALS)
    return f"{amount:.4f}"


def format_space(value: int) -> str:
    """Render a byte count with the largest fitting binary unit.

    Values that do not fit in 64 bits are rendered as whole EiB.

    Args:
        value: Size in bytes

    Returns:
        str: Human readable size with 2 decimal places

    Example:
        >>> format_space(1536)
        '1.50 KiB'
        >>> format_space(512)
        '512 Bytes'
    """
    if value >= _UINT64_LIMIT:
        return f"{value // SIZE_EIB} EiB"
    for threshold, unit in _SPACE_UNITS:
        if value >= threshold:
            return f"{value / threshold:.2f} {unit}"
    return f"{value} Bytes"


def strip_stream_header(raw: bytes) -> bytes:
    """Drop the Docker stream multiplexing header from exec output.

    The first byte is the stream type (1 stdout, 2 stderr), bytes 2-4 are
    reserved and bytes 5-8 hold the big-endian payload length.

    Args:
        raw: Raw bytes returned by an exec start request

    Returns:
        bytes: Payload without the header
    """
    return raw[STREAM_HEADER_SIZE:]


def parse_int(value: object, default: int = 0) -> int:
    """Parse an integer from chain data that may be int, str or hex str.

    Example:
        >>> parse_int("0xff")
        255
        >>> parse_int(None, 7)
        7
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return default
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    msg = f"Cannot parse integer from {value!r}"
    raise ValueError(msg)


__all__ = [
    "format_space",
    "parse_int",
    "planck_to_token",
    "strip_stream_header",
]
