"""
Tests for the database build: critical data and debug data
"""
from rlv_store import db
from rlv_store.build import build_database, load_critical_data, verify_critical_data
from rlv_store.data.core.user_info.user import User
from rlv_store.data.stores.store import Store, StoreItem


def test_critical_data_file_lists_every_store():
    critical = load_critical_data()
    store_ids = {s['id'] for s in critical['Core']['Stores'].values()}
    assert store_ids == {
        'farmacia', 'bar', 'restaurante', 'pizzaria', 'sorveteria', 'joalheria', 'sexshop', 'cafeteria'
    }


def test_build_without_debug_data(app, monkeypatch):
    monkeypatch.setenv('ADMIN_PASSWORD', 'admin-password')
    build_database(enable_debug_data=False, app=app)

    assert verify_critical_data(load_critical_data())
    assert Store.query.count() == 8
    assert StoreItem.query.count() == 0
    admin = User.query.filter_by(username='admin').one()
    assert admin.is_admin
    assert admin.check_password('admin-password')


def test_build_with_debug_data_is_repeatable(app):
    build_database(enable_debug_data=True, app=app)
    users = User.query.count()
    items = StoreItem.query.count()

    build_database(enable_debug_data=True, app=app)

    assert User.query.count() == users, "A second build must not duplicate users"
    assert StoreItem.query.count() == items
    assert items > 0

    manager = User.query.filter_by(username='Farmacia1212').one()
    assert manager.role == User.ROLE_MANAGER
    assert manager.store_id == 'farmacia'
    assert manager.check_password('debug-password')
    assert db.session.get(Store, 'sexshop').items == [], "Sexshop ships without items"
