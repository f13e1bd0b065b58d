"""
Tests for order submission and manager decisions
"""
from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from rlv_store import db
from rlv_store.buisness.core.errors import (
    AlreadyResolved,
    BuyerNotFound,
    DependencyUnavailable,
    EmptyCart,
    InsufficientBalance,
    PermissionDenied,
    StoreNotFound,
    ValidationError,
)
from rlv_store.buisness.core.guarded_update import reload, transition_if, unit_of_work
from rlv_store.data.core.user_info.user import User
from rlv_store.data.core.event_info.order_event import OrderEvent
from rlv_store.data.dispatching.dispatch_record import DispatchRecord
from rlv_store.data.ordering.order import Order
from rlv_store.data.ordering.store_sale import StoreSale
from rlv_store.data.stores.store import Store
from rlv_store.test.factories import T0, cart_with, make_user


def event_types(order_id):
    events = OrderEvent.query.filter_by(order_id=order_id).order_by(OrderEvent.id).all()
    return [e.event_type for e in events]


def submit(lifecycle, world, delivery_type='delivery', now=T0):
    cart = cart_with('farmacia', ('dipirona', 10.0, 2), ('curativo', 2.5, 1))
    return lifecycle.submit_order(cart, 'farmacia', world['buyer'].id, delivery_type, now=now)


def test_submit_snapshots_cart_and_clears_it(lifecycle, world):
    cart = cart_with('farmacia', ('dipirona', 10.0, 2), ('curativo', 2.5, 1))
    cart.add('bar', cart_with('bar', ('cerveja', 8.0, 1)).lines('bar')[0])

    order = lifecycle.submit_order(cart, 'farmacia', world['buyer'].id, 'pickup', now=T0)

    assert order.status == 'pending'
    assert order.total_amount == 22.5, "Total is sum of unit_price * quantity"
    assert [line['item_id'] for line in order.items] == ['dipirona', 'curativo'], "Cart order is preserved"
    assert order.created_at == T0
    assert cart.is_empty('farmacia'), "The submitted store's cart is cleared"
    assert not cart.is_empty('bar'), "Other stores' carts are untouched"
    assert event_types(order.id) == ['OrderSubmitted']


def test_submit_requires_a_buyer_record(lifecycle, world):
    cart = cart_with('farmacia', ('dipirona', 10.0, 1))
    with pytest.raises(BuyerNotFound):
        lifecycle.submit_order(cart, 'farmacia', 9999, 'pickup', now=T0)
    assert not cart.is_empty('farmacia'), "A refused submit keeps the cart"


def test_submit_refusals(lifecycle, world):
    buyer_id = world['buyer'].id
    with pytest.raises(StoreNotFound):
        lifecycle.submit_order(cart_with('nowhere', ('x', 1.0, 1)), 'nowhere', buyer_id, 'pickup', now=T0)
    with pytest.raises(EmptyCart):
        lifecycle.submit_order(cart_with('farmacia'), 'farmacia', buyer_id, 'pickup', now=T0)
    with pytest.raises(ValidationError):
        lifecycle.submit_order(cart_with('farmacia', ('dipirona', 10.0, 1)), 'farmacia', buyer_id, 'drone', now=T0)

    poor = make_user('pobre', wallet_balance=5.0)
    with pytest.raises(InsufficientBalance):
        lifecycle.submit_order(cart_with('farmacia', ('dipirona', 10.0, 1)), 'farmacia', poor.id, 'pickup', now=T0)


def test_manager_approves_delivery_order(lifecycle, world):
    order = submit(lifecycle, world)
    now = T0 + timedelta(seconds=10)

    approved = lifecycle.manager_decide(order.id, world['manager'].id, 'approve', notes='ok', now=now)

    assert approved.status == 'approved'
    assert approved.approved_at == now
    assert approved.decided_by_id == world['manager'].id
    assert not approved.auto_approved
    assert StoreSale.query.filter_by(order_id=order.id).count() == 2, "One sale per order line"

    record = DispatchRecord.query.filter_by(order_id=order.id).one()
    assert record.motoboy_status == 'waiting'
    assert record.manager_status == 'approved'
    assert record.manager_processed_at == now
    assert record.items == approved.items
    assert event_types(order.id) == ['OrderSubmitted', 'OrderApproved', 'SalesRecorded', 'DispatchCreated']


def test_pickup_approval_creates_no_dispatch(lifecycle, world):
    order = submit(lifecycle, world, delivery_type='pickup')
    lifecycle.manager_decide(order.id, world['manager'].id, 'approve', now=T0)
    assert DispatchRecord.query.count() == 0


def test_reject_records_no_sales(lifecycle, world):
    order = submit(lifecycle, world)
    rejected = lifecycle.manager_decide(order.id, world['manager'].id, 'reject', notes='sem estoque', now=T0)

    assert rejected.status == 'rejected'
    assert rejected.manager_notes == 'sem estoque'
    assert StoreSale.query.count() == 0
    assert DispatchRecord.query.count() == 0


def test_second_decision_is_already_resolved(lifecycle, world):
    """A second decision changes nothing and repeats no side effect"""
    order = submit(lifecycle, world)
    lifecycle.manager_decide(order.id, world['manager'].id, 'approve', now=T0)

    with pytest.raises(AlreadyResolved) as excinfo:
        lifecycle.manager_decide(order.id, world['manager'].id, 'reject', now=T0)
    assert excinfo.value.current == 'approved'

    with pytest.raises(AlreadyResolved):
        lifecycle.manager_decide(order.id, world['manager'].id, 'approve', now=T0)

    assert StoreSale.query.filter_by(order_id=order.id).count() == 2, "Sales are written once"
    assert DispatchRecord.query.filter_by(order_id=order.id).count() == 1, "One dispatch record per order"


def test_auto_approval_after_manager_decision_is_a_no_op(lifecycle, world):
    order = submit(lifecycle, world)
    lifecycle.manager_decide(order.id, world['manager'].id, 'reject', now=T0 + timedelta(seconds=30))

    assert lifecycle.approval_gate.auto_approve_overdue(T0 + timedelta(seconds=61)) == 0
    assert lifecycle.ledger.get(order.id).status == 'rejected'


def test_only_the_store_manager_decides(lifecycle, world):
    order = submit(lifecycle, world)

    with pytest.raises(PermissionDenied):
        lifecycle.manager_decide(order.id, world['bar_manager'].id, 'approve', now=T0)
    with pytest.raises(PermissionDenied):
        lifecycle.manager_decide(order.id, world['courier'].id, 'approve', now=T0)
    assert lifecycle.ledger.get(order.id).status == 'pending'

    approved = lifecycle.manager_decide(order.id, world['admin'].id, 'approve', now=T0)
    assert approved.status == 'approved', "Admins act on any store"


def test_reject_requires_a_manager(lifecycle, world):
    order = submit(lifecycle, world)
    with pytest.raises(ValidationError):
        lifecycle.ledger.reject(order.id, None, now=T0)


def test_approval_moves_the_total_from_wallet_to_store(lifecycle, world):
    order = submit(lifecycle, world, delivery_type='pickup')
    lifecycle.manager_decide(order.id, world['manager'].id, 'approve', now=T0)

    assert reload(User, world['buyer'].id).wallet_balance == 977.5
    assert reload(Store, 'farmacia').balance == 22.5

    with pytest.raises(AlreadyResolved):
        lifecycle.manager_decide(order.id, world['manager'].id, 'approve', now=T0)
    assert reload(User, world['buyer'].id).wallet_balance == 977.5, "A repeated decision charges nothing"


def test_pending_orders_cannot_spend_the_same_balance_twice(lifecycle, world):
    buyer = make_user('bia', wallet_balance=60.0)
    orders = [
        lifecycle.submit_order(cart_with('farmacia', ('dipirona', 10.0, 3), ('curativo', 10.0, 3)),
                               'farmacia', buyer.id, 'pickup', now=T0)
        for _ in range(3)
    ]
    assert all(o.total_amount == 60.0 for o in orders), "Each order alone fits the wallet at submit"

    lifecycle.manager_decide(orders[0].id, world['manager'].id, 'approve', now=T0)
    with pytest.raises(InsufficientBalance):
        lifecycle.manager_decide(orders[1].id, world['manager'].id, 'approve', now=T0)

    assert lifecycle.ledger.get(orders[1].id).status == 'pending', "A refused approval changes nothing"
    assert StoreSale.query.filter_by(order_id=orders[1].id).count() == 0
    assert reload(User, buyer.id).wallet_balance == 0.0
    assert reload(Store, 'farmacia').balance == 60.0

    assert lifecycle.approval_gate.auto_approve_overdue(T0 + timedelta(seconds=61)) == 0
    assert lifecycle.ledger.get(orders[2].id).status == 'pending', "The scheduler leaves it for the manager"

    rejected = lifecycle.manager_decide(orders[2].id, world['manager'].id, 'reject', now=T0)
    assert rejected.status == 'rejected'


def test_debit_refused_after_the_order_won_the_status_guard(lifecycle, world):
    order = submit(lifecycle, world, delivery_type='pickup')
    ledger = lifecycle.ledger

    with pytest.raises(InsufficientBalance):
        with unit_of_work():
            won = ledger._resolve(order.id, 'approved', world['manager'].id, None, T0, False)
            assert won.status == 'approved'
            # Wallet drained by another approval after our balance check
            db.session.execute(update(User).where(User.id == world['buyer'].id).values(wallet_balance=1.0))
            ledger._settle(won)

    assert reload(Order, order.id).status == 'pending', "The approval is rolled back with the refused debit"
    assert reload(Store, 'farmacia').balance == 0.0


def test_approval_that_loses_the_guarded_update(lifecycle, world):
    """Another actor resolves the order between our read and our update"""
    order = submit(lifecycle, world)
    lifecycle.ledger.get(order.id)
    db.session.execute(
        update(Order).where(Order.id == order.id).values(status='rejected')
        .execution_options(synchronize_session=False)
    )
    assert db.session.get(Order, order.id).status == 'pending', "Our copy is stale"

    with pytest.raises(AlreadyResolved) as excinfo:
        lifecycle.manager_decide(order.id, world['manager'].id, 'approve', now=T0)
    assert excinfo.value.current == 'rejected'

    assert StoreSale.query.filter_by(order_id=order.id).count() == 0
    assert DispatchRecord.query.filter_by(order_id=order.id).count() == 0
    assert reload(User, world['buyer'].id).wallet_balance == 1000.0


def test_only_one_of_two_guarded_updates_applies(lifecycle, world):
    order = submit(lifecycle, world)
    pending = {'status': 'pending'}

    first = transition_if(Order, order.id, pending, {'status': 'approved'})
    second = transition_if(Order, order.id, pending, {'status': 'rejected'})

    assert (first, second) == (True, False)
    assert reload(Order, order.id).status == 'approved'


def test_actor_name_lookup_reports_a_lost_connection_as_unavailable(lifecycle, world, monkeypatch):
    def get(*args, **kwargs):
        raise OperationalError('SELECT users', {}, Exception('connection lost'))

    monkeypatch.setattr(db.session(), 'get', get)
    with pytest.raises(DependencyUnavailable):
        lifecycle.ledger._username(world['manager'].id)
    assert lifecycle.ledger._username(None) == 'system'
