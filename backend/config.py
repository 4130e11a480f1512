# backend/config.py
import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    # WAREHOUSE_DB switches storage, e.g. to Postgres in production
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'WAREHOUSE_DB', f"sqlite:///{os.path.join(BASE_DIR, 'warehouse.db')}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # PIN of the admin user created on first start
    ADMIN_PIN = os.environ.get('ADMIN_PIN', '1234')

    PAGE_SIZE = int(os.environ.get('WAREHOUSE_PAGE_SIZE', 10))
    CODE_ATTEMPTS = int(os.environ.get('WAREHOUSE_CODE_ATTEMPTS', 5))
    LOG_LEVEL = os.environ.get('WAREHOUSE_LOG_LEVEL', 'INFO')
