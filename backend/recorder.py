# backend/recorder.py
"""Recording of stock movements.

A transaction is written in one unit of work: the stock check, the header,
the detail snapshots, the stock adjustments and the final total either all
commit together or the session is rolled back and nothing survives.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from codes import generate_transaction_code, unique_code
from errors import PersistenceError, StockInsufficientError, ValidationError, WarehouseError
from ledger import adjust_stock, check_stock, get_item
from models import db, Transaction, TransactionDetail

logger = logging.getLogger(__name__)

IN = 'in'
OUT = 'out'
DIRECTIONS = (IN, OUT)
NOTES_MAX_LENGTH = 255
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1

MONTHS = {
    1: 'Januari',
    2: 'Februari',
    3: 'Maret',
    4: 'April',
    5: 'Mei',
    6: 'Juni',
    7: 'Juli',
    8: 'Agustus',
    9: 'September',
    10: 'Oktober',
    11: 'November',
    12: 'Desember',
}


def format_transaction_date(moment):
    """``05, Mei 2025``"""
    return f'{moment.day:02d}, {MONTHS[moment.month]} {moment.year}'


def format_transaction_time(moment):
    return moment.strftime('%H:%M')


def _as_int(value, name):
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f'{name} must be an integer')
    try:
        value = int(value)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')
    # stored in signed 64-bit columns
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValidationError(f'{name} is out of range')
    return value


@dataclass(frozen=True)
class LineRequest:
    item_id: int
    quantity: int

    def __post_init__(self):
        object.__setattr__(self, 'item_id', _as_int(self.item_id, 'item_id'))
        object.__setattr__(self, 'quantity', _as_int(self.quantity, 'quantity'))
        if self.quantity < 1:
            raise ValidationError('quantity must be at least 1')


@dataclass(frozen=True)
class TransactionRequest:
    direction: str
    lines: List[LineRequest] = field(default_factory=list)
    notes: Optional[str] = None

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ValidationError("type must be 'in' or 'out'")
        if not self.lines:
            raise ValidationError('at least one item is required')
        if self.notes is not None:
            if not isinstance(self.notes, str):
                raise ValidationError('notes must be a string')
            if len(self.notes) > NOTES_MAX_LENGTH:
                raise ValidationError(f'notes may not exceed {NOTES_MAX_LENGTH} characters')

    @classmethod
    def from_payload(cls, data, checkout=False):
        """Parse a JSON body.

        Transactions send ``{type, notes, details: [{item_id, quantity}]}``,
        checkouts send ``{notes, items: [{id, quantity}]}`` and are always ``out``.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError('request body must be a JSON object')
        if checkout:
            direction, rows, id_key = OUT, data.get('items'), 'id'
        else:
            direction, rows, id_key = data.get('type'), data.get('details'), 'item_id'

        if rows is None or not isinstance(rows, list):
            raise ValidationError('at least one item is required')
        lines = []
        for row in rows:
            if not isinstance(row, dict) or id_key not in row or 'quantity' not in row:
                raise ValidationError(f'each line needs {id_key} and quantity')
            lines.append(LineRequest(row[id_key], row['quantity']))
        notes = data.get('notes') or None
        return cls(direction=direction, lines=lines, notes=notes)


def _check_availability(request):
    """Verify every referenced item exists and, for ``out``, has enough stock.

    Repeated lines for one item are summed before comparing.
    """
    requested = {}
    for line in request.lines:
        requested[line.item_id] = requested.get(line.item_id, 0) + line.quantity

    for item_id, quantity in requested.items():
        available = check_stock(item_id)
        if request.direction == OUT and available < quantity:
            item = get_item(item_id)
            raise StockInsufficientError(item_id, item.name, available, quantity)


def _transaction_code_taken(code):
    return db.session.execute(
        select(Transaction.id).where(Transaction.transaction_code == code)
    ).first() is not None


def record_transaction(request, user_id, clock=None, checkout=False):
    """Record ``request`` on behalf of ``user_id`` and return the stored Transaction.

    ``clock`` returns the current moment and defaults to ``datetime.now``.
    Raises a ``WarehouseError`` subclass on any failure, after rolling back.
    """
    if checkout and request.direction != OUT:
        raise ValidationError('checkout is always an out transaction')
    now = (clock or datetime.now)()
    attempts = current_app.config.get('CODE_ATTEMPTS', 5)

    try:
        _check_availability(request)

        code = unique_code(
            lambda: generate_transaction_code(now),
            _transaction_code_taken,
            attempts,
            kind='transaction code',
        )
        transaction = Transaction(
            transaction_code=code,
            type=request.direction,
            transaction_date=format_transaction_date(now),
            transaction_time=format_transaction_time(now),
            user_id=user_id,
            notes=request.notes,
            total=Decimal('0'),
        )
        db.session.add(transaction)
        db.session.flush()

        total = Decimal('0')
        for line in request.lines:
            item = get_item(line.item_id, lock=True)
            price = Decimal(item.price)
            subtotal = price * line.quantity
            transaction.details.append(TransactionDetail(
                item_id=item.id,
                item_name=item.name,
                item_unit=item.unit,
                price=price,
                quantity=line.quantity,
                subtotal=subtotal,
            ))
            total += subtotal

            delta = line.quantity if request.direction == IN else -line.quantity
            adjust_stock(item.id, delta)

        transaction.total = total
        db.session.commit()
    except WarehouseError as e:
        db.session.rollback()
        logger.warning('Rejected %s transaction for user %s: %s', request.direction, user_id, e.message)
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception('Storage failure while recording transaction for user %s', user_id)
        raise PersistenceError(f'Could not save transaction: {e.__class__.__name__}') from e

    logger.info(
        'Recorded %s transaction %s for user %s: %d line(s), total %s',
        transaction.type, transaction.transaction_code, user_id, len(request.lines), total,
    )
    return transaction


def record_checkout(user_id, lines, notes=None, clock=None):
    """Check items out for the authenticated user ``user_id``.

    ``lines`` holds ``LineRequest`` objects or ``(item_id, quantity)`` pairs.
    """
    lines = [line if isinstance(line, LineRequest) else LineRequest(*line) for line in lines]
    request = TransactionRequest(direction=OUT, lines=lines, notes=notes)
    return record_transaction(request, user_id, clock=clock, checkout=True)
