"""Unit tests for order ID generation and email normalization."""

import re
from unittest.mock import patch

import pytest

from regpay.utils.email import normalize_email
from regpay.utils.order_id import (
    MEMBERSHIP_PREFIX,
    PROGRAM_PREFIX,
    generate_order_id,
    to_base36,
)

ORDER_ID_PATTERN = re.compile(r"^(PRG|MEM)-[0-9A-Z]+-[0-9A-F]{8}$")


class TestToBase36:
    """Tests for base-36 encoding."""

    @pytest.mark.parametrize(
        "value,expected",
        [(0, "0"), (35, "z"), (36, "10"), (1295, "zz"), (46656, "1000")],
    )
    def test_encodes(self, value: int, expected: str) -> None:
        assert to_base36(value) == expected

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            to_base36(-1)


class TestGenerateOrderId:
    """Tests for generate_order_id."""

    def test_program_format(self) -> None:
        order_id = generate_order_id(PROGRAM_PREFIX)
        assert ORDER_ID_PATTERN.match(order_id)
        assert order_id.startswith("PRG-")

    def test_membership_format(self) -> None:
        order_id = generate_order_id(MEMBERSHIP_PREFIX)
        assert ORDER_ID_PATTERN.match(order_id)
        assert order_id.startswith("MEM-")

    def test_upper_cased(self) -> None:
        order_id = generate_order_id("prg")
        assert order_id == order_id.upper()

    def test_timestamp_segment_is_milliseconds(self) -> None:
        with patch("regpay.utils.order_id.time.time_ns", return_value=1_700_000_000_000_000_000):
            order_id = generate_order_id(PROGRAM_PREFIX)
        assert order_id.split("-")[1] == to_base36(1_700_000_000_000).upper()

    def test_unique_within_same_millisecond(self) -> None:
        with patch("regpay.utils.order_id.time.time_ns", return_value=1_700_000_000_000_000_000):
            ids = {generate_order_id(PROGRAM_PREFIX) for _ in range(200)}
        assert len(ids) == 200


class TestNormalizeEmail:
    """Tests for email normalization."""

    def test_trims_and_lowercases(self) -> None:
        assert normalize_email("  Ayu@Example.COM ") == "ayu@example.com"

    def test_idempotent(self) -> None:
        assert normalize_email(normalize_email("A@B.io")) == "a@b.io"
