"""Reduce decoded block extrinsics and events to a BlockRecord."""

from collections import defaultdict
from typing import Any

from src.data.blocks.models import BlockRecord, PunishmentEvent
from src.helpers.parsers import parse_int


PUNISHMENT_MODULE = "Sminer"
TRANSFER_MODULE = "Balances"
TRANSFER_EVENT = "Transfer"


def parse_block_timestamp(extrinsics: list[dict[str, Any]]) -> int:
    """Return the ``Timestamp.set`` value (unix millis) of a block, 0 if absent."""
    for extrinsic in extrinsics:
        call = extrinsic.get("call") or {}
        if call.get("call_module") == "Timestamp" and call.get("call_function") == "set":
            for arg in call.get("call_args") or []:
                if arg.get("name") == "now":
                    return parse_int(arg.get("value"))
    return 0


def _is_punishment(event: dict[str, Any]) -> bool:
    return (
        event.get("module_id") == PUNISHMENT_MODULE
        and "punish" in str(event.get("event_id", "")).lower()
    )


def _transfer_parties(attributes: Any) -> tuple[str, str, str]:
    if isinstance(attributes, dict):
        return (
            str(attributes.get("from", "")),
            str(attributes.get("to", "")),
            str(parse_int(attributes.get("amount"))),
        )
    if isinstance(attributes, list | tuple) and len(attributes) >= 3:
        return str(attributes[0]), str(attributes[1]), str(parse_int(attributes[2]))
    msg = f"Unexpected transfer attributes: {attributes!r}"
    raise ValueError(msg)


def parse_block(
    number: int,
    block_hash: str,
    extrinsics: list[dict[str, Any]],
    events: list[dict[str, Any]],
) -> BlockRecord:
    """Build a BlockRecord from decoded extrinsics and events.

    An extrinsic is a punishment when one of its events is a ``Sminer``
    event whose name contains ``Punish``; each ``Balances.Transfer`` event
    of that extrinsic becomes one PunishmentEvent.

    Args:
        number: Block number
        block_hash: Block hash
        extrinsics: Decoded extrinsics, in block order
        events: Decoded event records with their ``extrinsic_idx``

    Returns:
        BlockRecord: Immutable block record

    Raises:
        ValueError: If a transfer event of a punishment cannot be decoded
    """
    timestamp = parse_block_timestamp(extrinsics)

    events_by_extrinsic: dict[int, list[dict[str, Any]]] = defaultdict(list)
    for event in events:
        idx = event.get("extrinsic_idx")
        if idx is not None:
            events_by_extrinsic[idx].append(event)

    punishments: list[PunishmentEvent] = []
    for idx in sorted(events_by_extrinsic):
        extrinsic_events = events_by_extrinsic[idx]
        if not any(_is_punishment(event) for event in extrinsic_events):
            continue

        extrinsic = extrinsics[idx] if idx < len(extrinsics) else {}
        call = extrinsic.get("call") or {}
        extrinsic_name = ".".join(
            part for part in (call.get("call_module"), call.get("call_function")) if part
        )

        for event in extrinsic_events:
            if event.get("module_id") != TRANSFER_MODULE or event.get("event_id") != TRANSFER_EVENT:
                continue
            sender, receiver, amount = _transfer_parties(event.get("attributes"))
            punishments.append(
                PunishmentEvent(
                    account=sender,
                    recv_account=receiver,
                    extrinsic_hash=str(extrinsic.get("extrinsic_hash") or ""),
                    extrinsic_name=extrinsic_name,
                    amount=amount,
                    block_id=number,
                    block_hash=block_hash,
                    timestamp=timestamp,
                )
            )

    return BlockRecord(
        number=number,
        hash=block_hash,
        timestamp=timestamp,
        punishments=tuple(punishments),
    )


__all__ = [
    "parse_block",
    "parse_block_timestamp",
]
