"""
Pytest configuration and fixtures for the order and delivery lifecycle tests
"""
import os
import tempfile

os.environ.setdefault('LOG_DIR', os.path.join(tempfile.gettempdir(), 'rlv_store_test_logs'))

import pytest
from flask import g

from rlv_store import create_app
from rlv_store import db as _db
from rlv_store.buisness.core.clock import FrozenClock
from rlv_store.buisness.lifecycle import OrderLifecycle
from rlv_store.data.core.user_info.user import User
from rlv_store.test.factories import SCHEDULER_TOKEN, T0, make_item, make_store, make_user


@pytest.fixture(scope='function')
def clock():
    return FrozenClock(T0)


@pytest.fixture(scope='function')
def app(clock):
    """Create Flask application with a fresh in-memory database"""
    app = create_app({
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'TESTING': True,
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
        'ENABLE_HTTPS': False,
        'SESSION_COOKIE_SECURE': False,
        'SCHEDULER_TOKEN': SCHEDULER_TOKEN,
        'LIFECYCLE_CLOCK': clock,
    })

    @app.before_request
    def _reset_login_cache():
        # The fixture holds one app context open, so `g` is shared across
        # test-client requests; drop flask_login's per-request user cache.
        g.pop('_login_user', None)

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create Flask test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def lifecycle(app, clock):
    return OrderLifecycle.from_config(app.config, clock=clock)


@pytest.fixture(scope='function')
def world(app):
    """
    One store with two items, its manager, a courier, a second courier
    and a buyer with 1000 in the wallet.
    """
    store = make_store('farmacia', 'Farmacia')
    make_item('farmacia', 'dipirona', 10.0, name='Dipirona', category='Remedios')
    make_item('farmacia', 'curativo', 2.5, name='Curativo', category='Primeiros socorros')
    make_store('bar', 'Bar')
    make_item('bar', 'cerveja', 8.0, name='Cerveja', category='Bebidas')

    return {
        'store': store,
        'manager': make_user('Farmacia1212', User.ROLE_MANAGER, store_id='farmacia'),
        'bar_manager': make_user('Bar1212', User.ROLE_MANAGER, store_id='bar'),
        'courier': make_user('motoboy', User.ROLE_COURIER),
        'other_courier': make_user('motoboy2', User.ROLE_COURIER),
        'buyer': make_user('ana', User.ROLE_BUYER, wallet_balance=1000.0),
        'admin': make_user('admin', User.ROLE_ADMIN),
    }

