"""
Tests for the scheduler tick and its periodic runner
"""
import threading
from datetime import timedelta

from rlv_store import db
from rlv_store.buisness.core.errors import DependencyUnavailable
from rlv_store.buisness.scheduler.reconciler import STEP_APPROVE, STEP_CREDIT, STEP_EXPIRE
from rlv_store.buisness.scheduler.runner import run_periodically
from rlv_store.data.core.event_info.order_event import OrderEvent
from rlv_store.data.dispatching.dispatch_record import DispatchRecord
from rlv_store.data.ordering.order import Order
from rlv_store.services.inventory.inventory_service import InventoryService
from rlv_store.test.factories import T0, approved_delivery, cart_with


def submit_delivery(lifecycle, world, now=T0):
    cart = cart_with('farmacia', ('dipirona', 30.0, 2))
    return lifecycle.submit_order(cart, 'farmacia', world['buyer'].id, 'delivery', now=now)


def test_unattended_order_is_approved_delivered_and_credited(lifecycle, world, clock):
    """Pending for 61s, auto-approved, accepted, delivered, credited on the next tick"""
    order = submit_delivery(lifecycle, world)
    order_id = order.id
    assert order.total_amount == 60.0

    clock.advance(30)
    assert lifecycle.run_scheduler_tick().approved == 0, "Not overdue yet"

    clock.set(T0 + timedelta(seconds=61))
    result = lifecycle.run_scheduler_tick()
    assert result.ok
    assert result.approved == 1

    order = db.session.get(Order, order_id)
    assert order.status == 'approved'
    assert order.auto_approved
    assert order.decided_by_id is None
    approval = OrderEvent.query.filter_by(order_id=order_id, event_type='OrderApproved').one()
    assert not approval.is_human_made
    assert approval.description == 'Auto-approved after 60 seconds pending (no manager action)'

    record = DispatchRecord.query.filter_by(order_id=order_id).one()
    assert record.motoboy_status == 'waiting'
    assert record.manager_processed_at == T0 + timedelta(seconds=61)

    lifecycle.courier_decide(record.id, world['courier'].id, 'accept', now=T0 + timedelta(seconds=70))
    lifecycle.courier_decide(record.id, world['courier'].id, 'deliver', now=T0 + timedelta(seconds=80))

    clock.set(T0 + timedelta(seconds=90))
    result = lifecycle.run_scheduler_tick()
    assert result.credited == 1
    assert InventoryService.held_quantity(world['buyer'].id, 'dipirona') == 2

    assert lifecycle.run_scheduler_tick().to_dict() == {'approved': 0, 'expired': 0, 'credited': 0, 'errors': []}


def test_waiting_record_expires(lifecycle, world):
    record_id = approved_delivery(lifecycle, world).id

    result = lifecycle.run_scheduler_tick(now=T0 + timedelta(seconds=61))

    assert result.expired == 1
    record = db.session.get(DispatchRecord, record_id)
    assert (record.manager_status, record.motoboy_status) == ('expired', 'expired')


def test_step_order_does_not_matter(lifecycle, world):
    submit_delivery(lifecycle, world)
    now = T0 + timedelta(seconds=61)

    result = lifecycle.run_scheduler_tick(now=now, order=(STEP_CREDIT, STEP_EXPIRE, STEP_APPROVE))

    assert (result.approved, result.expired, result.credited) == (1, 0, 0)
    assert DispatchRecord.query.one().motoboy_status == 'waiting', \
        "A record created by this tick has not waited at all"

    again = lifecycle.run_scheduler_tick(now=now)
    assert (again.approved, again.expired, again.credited) == (0, 0, 0)


def test_failing_step_does_not_stop_the_others(lifecycle, world, monkeypatch):
    record_id = approved_delivery(lifecycle, world).id
    submit_delivery(lifecycle, world)

    def unavailable(now):
        raise DependencyUnavailable("database is locked")

    monkeypatch.setitem(lifecycle.reconciler.steps, STEP_APPROVE, unavailable)

    result = lifecycle.run_scheduler_tick(now=T0 + timedelta(seconds=61))

    assert not result.ok
    assert result.errors == ['approved: database is locked']
    assert result.expired == 1, "Expiry still ran"
    assert db.session.get(DispatchRecord, record_id).motoboy_status == 'expired'
    assert Order.query.filter_by(status='pending').count() == 1, "Left for the next tick"


def test_unexpected_error_is_reported(lifecycle, world, monkeypatch):
    def broken(now):
        raise RuntimeError("boom")

    monkeypatch.setitem(lifecycle.reconciler.steps, STEP_CREDIT, broken)
    result = lifecycle.run_scheduler_tick(now=T0)
    assert result.errors == ['credited: boom']
    assert result.approved == 0 and result.expired == 0


def test_runner_stops_after_max_ticks(app):
    calls = []
    ticks = run_periodically(app, 0, tick=lambda: calls.append(1), max_ticks=3)
    assert ticks == 3
    assert len(calls) == 3


def test_runner_survives_a_crashing_tick(app):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick fails")

    assert run_periodically(app, 0, tick=flaky, max_ticks=2) == 2
    assert len(calls) == 2


def test_runner_honours_stop_event(app):
    stop = threading.Event()
    stop.set()
    assert run_periodically(app, 0, stop_event=stop, tick=lambda: None) == 0
