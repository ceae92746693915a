"""Tests for QR order rules (formatting, order numbers, UPI links)."""

import pytest

from swadeshi.domain.orders import (
    OrderLine,
    format_amount,
    format_pos_item,
    kitchen_order_type_for,
    order_number,
    order_type_for,
    payment_block,
    upi_payment_link,
)


class TestOrderNumber:
    def test_first_eight_uppercased(self):
        assert order_number("3f2a9c1e-77aa-4b1c-9d2e-0123456789ab") == "3F2A9C1E"

    def test_hyphen_in_prefix_skipped(self):
        assert order_number("abcd-ef12-3456") == "ABCDEF12"


class TestEntityTypes:
    @pytest.mark.parametrize(
        "entity,order_type,kitchen_type",
        [("table", "dine-in", "dine_in"), ("room", "room_service", "room_service")],
    )
    def test_mapping(self, entity, order_type, kitchen_type):
        assert order_type_for(entity) == order_type
        assert kitchen_order_type_for(entity) == kitchen_type


class TestFormatting:
    def test_pos_item_integer_price(self):
        assert format_pos_item(OrderLine("m1", "Dosa", 2, 80.0)) == "2x Dosa @80"

    def test_pos_item_fractional_price(self):
        assert format_pos_item(OrderLine("m1", "Lassi", 1, 49.5)) == "1x Lassi @49.5"

    @pytest.mark.parametrize("amount,expected", [(330, "330.00"), (49.5, "49.50"), (0.125, "0.13")])
    def test_format_amount(self, amount, expected):
        assert format_amount(amount) == expected


class TestUpi:
    def test_link(self):
        link = upi_payment_link("cafe@okaxis", "Chai & Co", 120, "ABCD1234")
        assert link == "upi://pay?pa=cafe%40okaxis&pn=Chai%20%26%20Co&am=120.00&cu=INR&tn=Order%20ABCD1234"

    def test_default_payee(self):
        assert "&pn=Restaurant&" in upi_payment_link("x@upi", None, 1, "R")

    def test_block_without_upi_id(self):
        block = payment_block({"upi_id": None, "upi_name": "Cafe"}, 10, "REF")
        assert block["method"] == "pending"
        assert block["upi"]["paymentLink"] is None
