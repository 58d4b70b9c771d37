"""Unit tests for helper functions."""

import pytest

from src.helpers.constants import SIZE_EIB, SIZE_GIB, SIZE_TIB
from src.helpers.errors import ChainQueryError, WatchdogError
from src.helpers.parsers import format_space, parse_int, planck_to_token, strip_stream_header


class TestParsers:
    """Test parsing utility functions."""

    def test_planck_to_token(self) -> None:
        """Test scaling of on-chain amounts by 10^18."""
        assert planck_to_token(0) == "0.0000"
        assert planck_to_token(1_500_000_000_000_000_000) == "1.5000"
        assert planck_to_token(4_000_000 * 10**18) == "4000000.0000"
        assert planck_to_token(123_456_789) == "0.0000"
        assert planck_to_token(None) == ""

    def test_planck_to_token_keeps_u128_precision(self) -> None:
        """Test amounts beyond float precision are rendered exactly."""
        value = 2**100 * 10**18 + 5 * 10**14
        whole, fraction = planck_to_token(value).split(".")
        assert whole == str(2**100)
        assert fraction == "0005"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0, "0 Bytes"),
            (512, "512 Bytes"),
            (1536, "1.50 KiB"),
            (5 * 1024**2, "5.00 MiB"),
            (SIZE_GIB * 3 // 2, "1.50 GiB"),
            (SIZE_TIB * 100, "100.00 TiB"),
            (SIZE_EIB * 2, "2.00 EiB"),
        ],
    )
    def test_format_space(self, value: int, expected: str) -> None:
        """Test threshold-based binary units."""
        assert format_space(value) == expected

    def test_format_space_beyond_64_bits(self) -> None:
        """Test sizes that do not fit in 64 bits are whole EiB."""
        assert format_space(2**64 * 3) == f"{2**64 * 3 // SIZE_EIB} EiB"

    def test_strip_stream_header(self) -> None:
        """Test the 8-byte multiplexing header is removed."""
        raw = b"\x01\x00\x00\x00\x00\x00\x00\x05hello"
        assert strip_stream_header(raw) == b"hello"
        assert strip_stream_header(b"\x01\x00") == b""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(42, 42), ("42", 42), ("0xff", 255), ("1,000", 1000), (None, 0), ("", 0), (True, 1)],
    )
    def test_parse_int(self, value: object, expected: int) -> None:
        """Test integers from decoded chain values."""
        assert parse_int(value) == expected

    def test_parse_int_default_and_errors(self) -> None:
        """Test default value and unsupported types."""
        assert parse_int(None, default=7) == 7
        with pytest.raises(ValueError):
            parse_int("0xzz")
        with pytest.raises(ValueError, match="Cannot parse integer"):
            parse_int(1.5)


class TestErrors:
    """Test the error hierarchy."""

    def test_chain_query_error_carries_stage(self) -> None:
        error = ChainQueryError("reward", "connection reset")

        assert isinstance(error, WatchdogError)
        assert error.stage == "reward"
        assert str(error) == "reward: connection reset"
