# backend/models.py
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _money(value):
    return float(value) if value is not None else None


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    pin_hash = db.Column(db.String(255), nullable=False)
    is_admin = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'is_admin': self.is_admin,
            'created_at': self.created_at.isoformat()
        }


class Category(db.Model):
    __tablename__ = 'category'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


class Item(db.Model):
    __tablename__ = 'item'
    __table_args__ = (
        db.CheckConstraint('stock >= 0', name='ck_item_stock_non_negative'),
        db.CheckConstraint('min_stock >= 0', name='ck_item_min_stock_non_negative'),
        db.CheckConstraint('price >= 0', name='ck_item_price_non_negative'),
    )
    id = db.Column(db.Integer, primary_key=True)
    # no foreign key: deleting a category leaves its items pointing at nothing
    category_id = db.Column(db.Integer, index=True, nullable=False)
    item_code = db.Column(db.String(40), unique=True, index=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    unit = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    category = db.relationship(
        'Category',
        primaryjoin='foreign(Item.category_id) == Category.id',
        viewonly=True,
    )
    # deleting an item nulls item_id on its details, the snapshots stay
    details = db.relationship('TransactionDetail', backref='item', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'category_id': self.category_id,
            'category': self.category.name if self.category else None,
            'item_code': self.item_code,
            'name': self.name,
            'description': self.description,
            'stock': self.stock,
            'min_stock': self.min_stock,
            'price': _money(self.price),
            'unit': self.unit,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class Transaction(db.Model):
    __tablename__ = 'transaction'
    id = db.Column(db.Integer, primary_key=True)
    transaction_code = db.Column(db.String(40), unique=True, index=True, nullable=False)
    type = db.Column(db.String(3), nullable=False)
    transaction_date = db.Column(db.String(40), index=True, nullable=False)
    transaction_time = db.Column(db.String(5), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    notes = db.Column(db.String(255))
    total = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', lazy=True)
    details = db.relationship(
        'TransactionDetail', backref='transaction', lazy=True,
        cascade='all, delete-orphan', order_by='TransactionDetail.id'
    )

    def to_dict(self):
        return {
            'id': self.id,
            'transaction_code': self.transaction_code,
            'type': self.type,
            'transaction_date': self.transaction_date,
            'transaction_time': self.transaction_time,
            'user_id': self.user_id,
            'user': self.user.name if self.user else None,
            'notes': self.notes,
            'total': _money(self.total),
            'details': [d.to_dict() for d in self.details]
        }


class TransactionDetail(db.Model):
    __tablename__ = 'transaction_detail'
    __table_args__ = (
        db.CheckConstraint('quantity >= 1', name='ck_detail_quantity_positive'),
    )
    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transaction.id', ondelete='CASCADE'), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey('item.id', ondelete='SET NULL'), nullable=True)
    item_name = db.Column(db.String(100), nullable=False)
    item_unit = db.Column(db.String(20))
    price = db.Column(db.Numeric(15, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Numeric(15, 2), nullable=False)

    # reads only the snapshot columns, never the live item
    def to_dict(self):
        return {
            'id': self.id,
            'transaction_id': self.transaction_id,
            'item_id': self.item_id,
            'item_name': self.item_name,
            'item_unit': self.item_unit,
            'price': _money(self.price),
            'quantity': self.quantity,
            'subtotal': _money(self.subtotal)
        }
