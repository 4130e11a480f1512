"""Tests for stock reads and guarded adjustments."""

import pytest

from errors import ItemNotFoundError, StockInsufficientError
from ledger import adjust_stock, check_stock, get_item
from models import db, Item


def _stock(item_id):
    db.session.expire_all()
    return db.session.get(Item, item_id).stock


class TestCheckStock:
    def test_returns_current_stock(self, seeded, ctx):
        assert check_stock(seeded['rice']) == 10

    def test_unknown_item(self, seeded, ctx):
        with pytest.raises(ItemNotFoundError) as exc_info:
            check_stock(9999)
        assert exc_info.value.item_id == 9999


class TestGetItem:
    def test_locked_read_returns_item(self, seeded, ctx):
        item = get_item(seeded['sugar'], lock=True)
        assert item.name == 'Gula'

    def test_unknown_item(self, seeded, ctx):
        with pytest.raises(ItemNotFoundError):
            get_item(9999)


class TestAdjustStock:
    def test_positive_delta_increases_stock(self, seeded, ctx):
        adjust_stock(seeded['rice'], 5)
        assert _stock(seeded['rice']) == 15

    def test_negative_delta_decreases_stock(self, seeded, ctx):
        adjust_stock(seeded['rice'], -10)
        assert _stock(seeded['rice']) == 0

    def test_refuses_to_go_negative(self, seeded, ctx):
        with pytest.raises(StockInsufficientError) as exc_info:
            adjust_stock(seeded['beef'], -6)
        assert exc_info.value.available == 5
        assert exc_info.value.requested == 6
        assert exc_info.value.item_name == 'Sapi'
        assert _stock(seeded['beef']) == 5

    def test_second_decrement_loses_when_stock_runs_out(self, seeded, ctx):
        adjust_stock(seeded['beef'], -4)
        with pytest.raises(StockInsufficientError) as exc_info:
            adjust_stock(seeded['beef'], -4)
        assert exc_info.value.available == 1
        assert _stock(seeded['beef']) == 1

    def test_unknown_item(self, seeded, ctx):
        with pytest.raises(ItemNotFoundError):
            adjust_stock(9999, 1)
