# backend/ledger.py
"""Stock reads and guarded stock adjustments.

These run inside the caller's unit of work and never commit on their own.
"""
from sqlalchemy import select, update

from errors import ItemNotFoundError, StockInsufficientError
from models import db, Item


def get_item(item_id, lock=False):
    query = select(Item).where(Item.id == item_id).execution_options(populate_existing=True)
    if lock:
        # no-op on SQLite, row lock on backends that support it
        query = query.with_for_update()
    item = db.session.execute(query).scalar_one_or_none()
    if item is None:
        raise ItemNotFoundError(item_id)
    return item


def check_stock(item_id):
    stock = db.session.execute(
        select(Item.stock).where(Item.id == item_id)
    ).scalar_one_or_none()
    if stock is None:
        raise ItemNotFoundError(item_id)
    return stock


def adjust_stock(item_id, delta):
    """Add ``delta`` to the item's stock, refusing to go below zero.

    The guard lives in the UPDATE itself, so a concurrent decrement that
    slipped in after a stock check cannot push the count negative.
    """
    result = db.session.execute(
        update(Item)
        .where(Item.id == item_id, Item.stock + delta >= 0)
        .values(stock=Item.stock + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    row = db.session.execute(
        select(Item.name, Item.stock).where(Item.id == item_id)
    ).one_or_none()
    if row is None:
        raise ItemNotFoundError(item_id)
    raise StockInsufficientError(item_id, row.name, row.stock, -delta)
