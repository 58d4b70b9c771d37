"""Tests for reducing decoded blocks to BlockRecords."""

import pytest

from src.data.blocks.parser import parse_block, parse_block_timestamp


TIMESTAMP_EXTRINSIC = {
    "extrinsic_hash": None,
    "call": {
        "call_module": "Timestamp",
        "call_function": "set",
        "call_args": [{"name": "now", "type": "Moment", "value": 1_700_000_000_000}],
    },
}

PROOF_EXTRINSIC = {
    "extrinsic_hash": "0xproof",
    "call": {"call_module": "Audit", "call_function": "submit_verify_service_result", "call_args": []},
}

TRANSFER_EXTRINSIC = {
    "extrinsic_hash": "0xtransfer",
    "call": {"call_module": "Balances", "call_function": "transfer_keep_alive", "call_args": []},
}


def event(idx: int, module: str, name: str, attributes: object = None) -> dict:
    return {
        "phase": "ApplyExtrinsic",
        "extrinsic_idx": idx,
        "module_id": module,
        "event_id": name,
        "attributes": attributes,
    }


class TestParseBlock:
    """Tests for parse_block."""

    def test_extracts_punishment_transfers(self) -> None:
        events = [
            event(0, "System", "ExtrinsicSuccess"),
            event(1, "Balances", "Transfer", {"from": "cXminer", "to": "cXtreasury", "amount": 5 * 10**18}),
            event(1, "Sminer", "IncreaseCollateral"),
            event(1, "Sminer", "Punish"),
            event(2, "Balances", "Transfer", {"from": "cXalice", "to": "cXbob", "amount": 1}),
        ]

        record = parse_block(
            42, "0xblock42", [TIMESTAMP_EXTRINSIC, PROOF_EXTRINSIC, TRANSFER_EXTRINSIC], events
        )

        assert record.number == 42
        assert record.hash == "0xblock42"
        assert record.timestamp == 1_700_000_000_000
        assert len(record.punishments) == 1
        punishment = record.punishments[0]
        assert punishment.account == "cXminer"
        assert punishment.recv_account == "cXtreasury"
        assert punishment.amount == str(5 * 10**18)
        assert punishment.extrinsic_hash == "0xproof"
        assert punishment.extrinsic_name == "Audit.submit_verify_service_result"
        assert punishment.block_id == 42
        assert punishment.block_hash == "0xblock42"

    def test_positional_transfer_attributes(self) -> None:
        events = [
            event(1, "Sminer", "PunishMiner"),
            event(1, "Balances", "Transfer", ["cXminer", "cXtreasury", "0x10"]),
        ]

        record = parse_block(7, "0x7", [TIMESTAMP_EXTRINSIC, PROOF_EXTRINSIC], events)

        assert [(p.account, p.amount) for p in record.punishments] == [("cXminer", "16")]

    def test_block_without_punishment(self) -> None:
        events = [event(2, "Balances", "Transfer", {"from": "cXalice", "to": "cXbob", "amount": 1})]

        record = parse_block(8, "0x8", [TIMESTAMP_EXTRINSIC, PROOF_EXTRINSIC, TRANSFER_EXTRINSIC], events)

        assert record.punishments == ()

    def test_malformed_transfer_raises(self) -> None:
        events = [event(1, "Sminer", "Punish"), event(1, "Balances", "Transfer", "garbage")]

        with pytest.raises(ValueError, match="Unexpected transfer attributes"):
            parse_block(9, "0x9", [TIMESTAMP_EXTRINSIC, PROOF_EXTRINSIC], events)

    def test_missing_timestamp(self) -> None:
        assert parse_block_timestamp([PROOF_EXTRINSIC]) == 0
        assert parse_block_timestamp([TIMESTAMP_EXTRINSIC]) == 1_700_000_000_000
