# backend/app.py
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from functools import wraps

from flask import Blueprint, Flask, current_app, g, jsonify, request
from flask_cors import CORS
from sqlalchemy import false, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from codes import generate_item_code, unique_code
from config import Config
from errors import PersistenceError, ValidationError, WarehouseError
from models import db, Category, Item, Transaction, User
from recorder import INT64_MAX, IN, OUT, TransactionRequest, format_transaction_date, record_transaction

api = Blueprint('api', __name__, url_prefix='/api')


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # Allow cross-origin during development; in production, restrict origins if needed
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    db.init_app(app)
    app.register_blueprint(api)

    @app.errorhandler(WarehouseError)
    def warehouse_error(err):
        body = err.to_dict()
        # echo the submitted input, minus credentials, so the client can re-submit it
        submitted = request.get_json(silent=True)
        if isinstance(submitted, dict):
            submitted = {k: v for k, v in submitted.items() if k not in ('pin', 'admin_pin')}
        body['old'] = submitted
        return jsonify(body), err.status_code

    @app.errorhandler(404)
    def not_found(err):
        return jsonify({'ok': False, 'error': 'not found'}), 404

    # create tables and default admin (only inside app context)
    with app.app_context():
        db.create_all()
        if not User.query.first():
            admin_pin = app.config['ADMIN_PIN']
            admin = User(name='admin', pin_hash=generate_password_hash(admin_pin), is_admin=True)
            db.session.add(admin)
            db.session.commit()
            app.logger.warning('Created default admin user "admin". Change its PIN immediately!')

    return app


# -------------------------
# Helper utilities
# -------------------------
def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('request body must be a JSON object')
    return data


def _text(data, key):
    """Return the stripped string at ``key``, or '' when missing."""
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{key} must be a string')
    return value.strip()


def _credential(key):
    return _payload().get(key) or request.args.get(key)


def find_user(name, pin):
    """Return the user matching (name, pin) or None."""
    if not name or not pin:
        return None
    user = User.query.filter_by(name=str(name)).first()
    if user and check_password_hash(user.pin_hash, str(pin)):
        return user
    return None


def require_admin(name, pin):
    """Verify that (name,pin) belongs to an admin user. Returns user or None."""
    user = find_user(name, pin)
    if user and user.is_admin:
        return user
    return None


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        admin = require_admin(_credential('admin_name'), _credential('admin_pin'))
        if not admin:
            return jsonify({'ok': False, 'error': 'admin auth required'}), 403
        g.user = admin
        return view(*args, **kwargs)
    return wrapper


def user_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = find_user(_credential('name'), _credential('pin'))
        if not user:
            return jsonify({'ok': False, 'error': 'login required'}), 401
        g.user = user
        return view(*args, **kwargs)
    return wrapper


def _now():
    clock = current_app.config.get('CLOCK') or datetime.now
    return clock()


def _page():
    try:
        return max(1, int(request.args.get('page', 1)))
    except ValueError:
        raise ValidationError('page must be an integer')


def _paginated(query, key, **extra):
    page = query.paginate(page=_page(), per_page=current_app.config['PAGE_SIZE'], error_out=False)
    return jsonify({
        'ok': True,
        key: [row.to_dict() for row in page.items],
        'page': page.page,
        'pages': page.pages,
        'total': page.total,
        **extra
    })


def _date_filter():
    """Turn the ``date`` query arg (YYYY-MM-DD, default today) into the stored format."""
    raw = request.args.get('date')
    if not raw:
        today = _now()
        return format_transaction_date(today), today.strftime('%Y-%m-%d')
    try:
        day = datetime.strptime(raw, '%Y-%m-%d')
    except ValueError:
        raise ValidationError('date must be formatted as YYYY-MM-DD')
    return format_transaction_date(day), raw


def _category_filter(query):
    category = request.args.get('category')
    if not category or category == 'all':
        return query
    try:
        category_id = int(category)
    except ValueError:
        raise ValidationError('category must be an id or "all"')
    if not 0 < category_id <= INT64_MAX:
        return query.filter(false())
    return query.filter(Item.category_id == category_id)


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception('Commit failed')
        raise PersistenceError(f'Could not save changes: {e.__class__.__name__}') from e


# -------------------------
# Health check and info
# -------------------------
@api.route('/health', methods=['GET'])
def health():
    return jsonify({'ok': True, 'app': 'warehouse-backend', 'db': current_app.config['SQLALCHEMY_DATABASE_URI']})


# -------------------------
# Auth endpoints
# -------------------------
@api.route('/auth/create_user', methods=['POST'])
@admin_required
def create_user():
    """
    Create a new user.
    JSON: { name, pin, is_admin (optional), admin_name, admin_pin }
    """
    data = _payload()
    name = _text(data, 'name')
    pin = _text(data, 'pin')
    is_admin = bool(data.get('is_admin', False))

    if not name or not pin:
        return jsonify({'ok': False, 'error': 'name and pin required'}), 400

    if User.query.filter_by(name=name).first():
        return jsonify({'ok': False, 'error': 'user already exists'}), 400

    user = User(name=name, pin_hash=generate_password_hash(pin), is_admin=is_admin)
    db.session.add(user)
    _commit()
    return jsonify({'ok': True, 'user': user.to_dict()}), 201


@api.route('/auth/login', methods=['POST'])
def login():
    """
    Login using name and pin.
    JSON: { name, pin }
    """
    data = _payload()
    name = _text(data, 'name')
    pin = _text(data, 'pin')
    if not name or not pin:
        return jsonify({'ok': False, 'error': 'name and pin required'}), 400

    user = find_user(name, pin)
    if user:
        return jsonify({'ok': True, 'user': user.to_dict()})
    return jsonify({'ok': False, 'error': 'invalid credentials'}), 401


@api.route('/users', methods=['GET'])
@admin_required
def list_users():
    users = User.query.order_by(User.name).all()
    return jsonify({'ok': True, 'users': [u.to_dict() for u in users]})


# -------------------------
# Category endpoints
# -------------------------
def _category_name(data):
    name = _text(data, 'name')
    if not name:
        raise ValidationError('name required')
    if len(name) > 100:
        raise ValidationError('name may not exceed 100 characters')
    return name


@api.route('/categories', methods=['GET'])
@admin_required
def list_categories():
    categories = Category.query.order_by(Category.name).all()
    return jsonify({'ok': True, 'categories': [c.to_dict() for c in categories]})


@api.route('/categories', methods=['POST'])
@admin_required
def create_category():
    category = Category(name=_category_name(_payload()))
    db.session.add(category)
    _commit()
    return jsonify({'ok': True, 'category': category.to_dict()}), 201


@api.route('/categories/<int:category_id>', methods=['PUT'])
@admin_required
def update_category(category_id):
    category = db.get_or_404(Category, category_id)
    category.name = _category_name(_payload())
    _commit()
    return jsonify({'ok': True, 'category': category.to_dict()})


@api.route('/categories/<int:category_id>', methods=['DELETE'])
@admin_required
def delete_category(category_id):
    # items of the category are left in place with a dangling category_id
    category = db.get_or_404(Category, category_id)
    db.session.delete(category)
    _commit()
    return jsonify({'ok': True})


# -------------------------
# Item endpoints
# -------------------------
def _non_negative_int(data, key):
    value = data.get(key)
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{key} must be a non-negative integer')
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f'{key} must be a non-negative integer')
    try:
        value = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f'{key} must be a non-negative integer')
    if not 0 <= value <= INT64_MAX:
        raise ValidationError(f'{key} must be a non-negative integer')
    return value


def _item_fields(data, with_stock):
    """Validate an item payload. Stock is only accepted when the item is created."""
    try:
        category_id = int(data.get('category_id'))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError('category_id required')
    category = db.session.get(Category, category_id) if 0 < category_id <= INT64_MAX else None
    if category is None:
        raise ValidationError('category not found')

    name = _text(data, 'name')
    if not name or len(name) > 100:
        raise ValidationError('name required (max 100 characters)')
    unit = _text(data, 'unit')
    if not unit or len(unit) > 20:
        raise ValidationError('unit required (max 20 characters)')
    try:
        price = Decimal(str(data.get('price')))
    except InvalidOperation:
        raise ValidationError('price must be a number')
    if not price.is_finite() or price < 0:
        raise ValidationError('price must be zero or more')

    fields = {
        'category_id': category.id,
        'name': name,
        'description': _text(data, 'description') or None,
        'min_stock': _non_negative_int(data, 'min_stock'),
        'price': price,
        'unit': unit,
    }
    if with_stock:
        fields['stock'] = _non_negative_int(data, 'stock')
    return category, fields


def _item_code_taken(code):
    return db.session.execute(select(Item.id).where(Item.item_code == code)).first() is not None


@api.route('/items', methods=['GET'])
@admin_required
def list_items():
    # inner join hides items whose category was deleted
    query = Item.query.join(Category, Item.category_id == Category.id)

    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            Item.name.ilike(pattern),
            Item.description.ilike(pattern),
            Item.item_code.ilike(pattern)
        ))

    query = _category_filter(query)

    return _paginated(query.order_by(Item.created_at.desc(), Item.id.desc()), 'items')


@api.route('/items', methods=['POST'])
@admin_required
def create_item():
    """
    Create an item and assign its item_code.
    JSON: { category_id, name, description?, stock, min_stock, price, unit }
    """
    category, fields = _item_fields(_payload(), with_stock=True)
    fields['item_code'] = unique_code(
        lambda: generate_item_code(category.name),
        _item_code_taken,
        current_app.config['CODE_ATTEMPTS'],
        kind='item code',
    )
    item = Item(**fields)
    db.session.add(item)
    _commit()
    current_app.logger.info('Created item %s (%s)', item.item_code, item.name)
    return jsonify({'ok': True, 'item': item.to_dict()}), 201


@api.route('/items/<int:item_id>', methods=['GET'])
@admin_required
def show_item(item_id):
    item = db.get_or_404(Item, item_id)
    return jsonify({'ok': True, 'item': item.to_dict()})


@api.route('/items/<int:item_id>', methods=['PUT'])
@admin_required
def update_item(item_id):
    item = db.get_or_404(Item, item_id)
    _, fields = _item_fields(_payload(), with_stock=False)
    for key, value in fields.items():
        setattr(item, key, value)
    _commit()
    return jsonify({'ok': True, 'item': item.to_dict()})


@api.route('/items/<int:item_id>', methods=['DELETE'])
@admin_required
def delete_item(item_id):
    item = db.get_or_404(Item, item_id)
    db.session.delete(item)
    _commit()
    return jsonify({'ok': True})


# -------------------------
# Transaction endpoints
# -------------------------
@api.route('/transactions', methods=['GET'])
@admin_required
def list_transactions():
    stored_date, raw_date = _date_filter()
    query = Transaction.query.filter_by(transaction_date=stored_date).order_by(Transaction.id.desc())
    return _paginated(query, 'transactions', date=raw_date)


@api.route('/transactions', methods=['POST'])
@admin_required
def create_transaction():
    """
    Record a stock movement.
    JSON: { type: 'in'|'out', notes?, details: [{item_id, quantity}], admin_name, admin_pin }
    """
    trx_request = TransactionRequest.from_payload(_payload())
    transaction = record_transaction(trx_request, g.user.id, clock=current_app.config.get('CLOCK'))
    return jsonify({'ok': True, 'transaction': transaction.to_dict()}), 201


@api.route('/transactions/<int:transaction_id>', methods=['GET'])
@admin_required
def show_transaction(transaction_id):
    transaction = db.get_or_404(Transaction, transaction_id)
    return jsonify({'ok': True, 'transaction': transaction.to_dict()})


# -------------------------
# Checkout endpoints
# -------------------------
@api.route('/checkout/items', methods=['GET'])
@user_required
def checkout_items():
    query = (Item.query
             .join(Category, Item.category_id == Category.id)
             .filter(Item.stock > 0))

    search = request.args.get('search')
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Item.name.ilike(pattern), Item.description.ilike(pattern)))

    query = _category_filter(query)

    items = query.order_by(Item.name).all()
    categories = Category.query.order_by(Category.name).all()
    return jsonify({
        'ok': True,
        'items': [item.to_dict() for item in items],
        'categories': [c.to_dict() for c in categories]
    })


def _own_checkouts():
    return Transaction.query.filter_by(type=OUT, user_id=g.user.id)


@api.route('/checkout', methods=['GET'])
@user_required
def list_checkouts():
    stored_date, raw_date = _date_filter()
    query = _own_checkouts().filter_by(transaction_date=stored_date).order_by(Transaction.id.desc())
    return _paginated(query, 'transactions', date=raw_date)


@api.route('/checkout', methods=['POST'])
@user_required
def create_checkout():
    """
    Check items out for the logged in user.
    JSON: { notes?, items: [{id, quantity}], name, pin }
    """
    trx_request = TransactionRequest.from_payload(_payload(), checkout=True)
    transaction = record_transaction(
        trx_request, g.user.id, clock=current_app.config.get('CLOCK'), checkout=True
    )
    return jsonify({'ok': True, 'transaction': transaction.to_dict()}), 201


@api.route('/checkout/<int:transaction_id>', methods=['GET'])
@user_required
def show_checkout(transaction_id):
    transaction = _own_checkouts().filter_by(id=transaction_id).first_or_404()
    return jsonify({'ok': True, 'transaction': transaction.to_dict()})


# -------------------------
# Dashboards
# -------------------------
@api.route('/dashboard', methods=['GET'])
@user_required
def dashboard():
    return jsonify({'ok': True, 'items_count': Item.query.count(), 'username': g.user.name})


@api.route('/admin/dashboard', methods=['GET'])
@admin_required
def admin_dashboard():
    def total_for(direction):
        total = db.session.execute(
            select(func.coalesce(func.sum(Transaction.total), 0)).where(Transaction.type == direction)
        ).scalar()
        return float(total)

    return jsonify({
        'ok': True,
        'total_in': total_for(IN),
        'total_out': total_for(OUT),
        'total_items': Item.query.count()
    })


# -------------------------
# Run server
# -------------------------
if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=False)
