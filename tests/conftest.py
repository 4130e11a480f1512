from datetime import datetime
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from models import db, Category, Item, User

FIXED_NOW = datetime(2025, 5, 20, 14, 35, 10)


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'warehouse.db'}",
        'ADMIN_PIN': '1234',
        'CLOCK': lambda: FIXED_NOW,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


def make_item(category_id, **overrides):
    defaults = {
        'category_id': category_id,
        'item_code': f"item-{overrides.get('name', 'x').lower()}",
        'name': 'Beras',
        'unit': 'kg',
        'stock': 10,
        'min_stock': 1,
        'price': Decimal('1000'),
    }
    defaults.update(overrides)
    return Item(**defaults)


@pytest.fixture
def seeded(app):
    """Two categories, three items and a regular user. Returns their ids."""
    with app.app_context():
        bahan = Category(name='Bahan Pokok')
        daging = Category(name='Daging')
        db.session.add_all([bahan, daging])
        db.session.flush()

        rice = make_item(bahan.id, name='Beras', unit='kg', stock=10, price=Decimal('1000'))
        sugar = make_item(bahan.id, name='Gula', unit='kg', stock=20, price=Decimal('500'),
                          description='Gula pasir')
        beef = make_item(daging.id, name='Sapi', unit='kg', stock=5, price=Decimal('120000.50'))
        user = User(name='budi', pin_hash=generate_password_hash('0000'), is_admin=False)
        db.session.add_all([rice, sugar, beef, user])
        db.session.commit()

        return {
            'bahan': bahan.id,
            'daging': daging.id,
            'rice': rice.id,
            'sugar': sugar.id,
            'beef': beef.id,
            'user': user.id,
            'admin': User.query.filter_by(name='admin').one().id,
        }
