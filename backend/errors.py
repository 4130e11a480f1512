# backend/errors.py


class WarehouseError(Exception):
    """Base class for failures surfaced by the transaction core."""
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'ok': False, 'error': self.message}


class ValidationError(WarehouseError):
    status_code = 400


class ItemNotFoundError(WarehouseError):
    status_code = 404

    def __init__(self, item_id):
        super().__init__(f'Item with id {item_id} not found')
        self.item_id = item_id


class StockInsufficientError(WarehouseError):
    status_code = 409

    def __init__(self, item_id, item_name, available, requested):
        super().__init__(
            f'Insufficient stock for {item_name}: requested {requested}, available {available}'
        )
        self.item_id = item_id
        self.item_name = item_name
        self.available = available
        self.requested = requested

    def to_dict(self):
        data = super().to_dict()
        data['item_id'] = self.item_id
        data['available'] = self.available
        return data


class PersistenceError(WarehouseError):
    status_code = 500


class CodeCollisionError(WarehouseError):
    status_code = 409

    def __init__(self, kind, attempts):
        super().__init__(f'Could not generate a unique {kind} after {attempts} attempts')
        self.kind = kind
        self.attempts = attempts
