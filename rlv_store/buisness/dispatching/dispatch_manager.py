"""
DispatchManager - courier-side lifecycle of approved delivery orders

Every transition is a conditional update on the status columns the caller
observed; a loser of a race gets InvalidTransition and re-reads.
Methods flush but never commit, except for the scheduler batch
(expire_overdue) which commits per record.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update, or_, and_

from rlv_store import db
from rlv_store.buisness.core.clock import Clock
from rlv_store.buisness.core.errors import (
    CourierMismatch,
    DispatchNotFound,
    InvalidTransition,
    NotFoundError,
)
from rlv_store.buisness.core.guarded_update import transition_if, reload, persistence_guard, unit_of_work
from rlv_store.buisness.dispatching.narrator import DispatchNarrator
from rlv_store.buisness.dispatching.state_machine import CourierStateMachine, ManagerDispatchStatus
from rlv_store.buisness.scheduler.deadlines import DISPATCH_WAIT_SECONDS, cutoff, dispatch_due_for_expiry
from rlv_store.data.core.event_info.order_event import OrderEvent
from rlv_store.data.core.user_info.user import User
from rlv_store.data.dispatching.dispatch_record import DispatchRecord
from rlv_store.data.inventory.inventory_credit import InventoryCredit
from rlv_store.data.inventory.inventory_line import InventoryLine
from rlv_store.data.ordering.order import Order
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.dispatching.manager")

CANCELLED_NOTE = "[courier delivery cancelled]"


class DispatchManager:

    def __init__(self, wait_seconds: int = DISPATCH_WAIT_SECONDS, clock: Optional[Clock] = None):
        self.wait_seconds = wait_seconds
        self.clock = clock or Clock()

    def get(self, dispatch_id: int) -> DispatchRecord:
        with persistence_guard():
            record = db.session.get(DispatchRecord, dispatch_id)
        if record is None:
            raise DispatchNotFound(dispatch_id)
        return record

    def find_for_order(self, order_id: int) -> Optional[DispatchRecord]:
        with persistence_guard():
            return db.session.execute(
                select(DispatchRecord).where(DispatchRecord.order_id == order_id)
            ).scalar_one_or_none()

    def create_for_order(self, order: Order, now: Optional[datetime] = None) -> DispatchRecord:
        """
        Create the dispatch record of an approved delivery order.

        Idempotent: an existing record for the order is returned unchanged.
        The unique order_id column backs this up against concurrent creators.

        Raises:
            InvalidTransition: Order is not an approved delivery order
        """
        now = now or self.clock.now()

        existing = self.find_for_order(order.id)
        if existing is not None:
            logger.info(f"Dispatch record {existing.id} already exists for order {order.id}")
            return existing

        if order.status != Order.STATUS_APPROVED or order.delivery_type != Order.DELIVERY_DELIVERY:
            raise InvalidTransition(
                'Order', order.id, f"{order.status}/{order.delivery_type}", 'dispatch',
                message=f"Order {order.id} is not an approved delivery order",
            )

        buyer = order.buyer
        record = DispatchRecord(
            order_id=order.id,
            store_id=order.store_id,
            customer_id=order.buyer_id,
            customer_username=buyer.username if buyer else str(order.buyer_id),
            items=list(order.items),
            total_amount=order.total_amount,
            manager_status=ManagerDispatchStatus.APPROVED,
            motoboy_status=CourierStateMachine.WAITING,
            manager_notes=order.manager_notes,
            manager_processed_at=now,
            created_at=now,
            updated_at=now,
            created_by_id=order.decided_by_id,
        )
        with persistence_guard():
            db.session.add(record)
            db.session.flush()

            OrderEvent.record(
                order_id=order.id,
                dispatch_record_id=record.id,
                event_type='DispatchCreated',
                description=DispatchNarrator.dispatch_created(record),
                actor_id=order.decided_by_id,
                is_human_made=False,
                timestamp=now,
            )

        logger.info(f"Dispatch record {record.id} created for order {order.id}, waiting for a courier")
        return record

    def courier_decide(
        self,
        dispatch_id: int,
        courier_id: int,
        decision: str,
        now: Optional[datetime] = None,
    ) -> DispatchRecord:
        """
        Apply a courier decision: accept, reject or deliver.

        Only a waiting record can be accepted or rejected, and only the
        courier who accepted a record can deliver it.

        Raises:
            DispatchNotFound: Unknown dispatch record
            InvalidTransition: Record is not in the required state
            CourierMismatch: Delivering a record accepted by another courier
        """
        required, target = CourierStateMachine.resolve_decision(decision)
        now = now or self.clock.now()

        with persistence_guard():
            courier = db.session.get(User, courier_id)
        if courier is None:
            raise NotFoundError('Courier', courier_id)

        record = self.get(dispatch_id)
        if record.motoboy_status != required or record.manager_status != ManagerDispatchStatus.APPROVED:
            logger.info(
                f"Courier {courier.username} cannot {decision} dispatch {dispatch_id}: "
                f"status {record.manager_status}/{record.motoboy_status}"
            )
            raise InvalidTransition('DispatchRecord', dispatch_id, record.motoboy_status, target)
        CourierStateMachine.validate_transition(dispatch_id, record.motoboy_status, target)

        expected = {
            'motoboy_status': required,
            'manager_status': ManagerDispatchStatus.APPROVED,
        }
        values = {
            'motoboy_status': target,
            'updated_at': now,
            'updated_by_id': courier.id,
        }

        if target in (CourierStateMachine.ACCEPTED, CourierStateMachine.REJECTED):
            values['courier_id'] = courier.id
            values['motoboy_accepted_at'] = now
        elif target == CourierStateMachine.DELIVERED:
            if record.courier_id != courier.id:
                raise CourierMismatch(dispatch_id, record.motoboy_status, target)
            expected['courier_id'] = courier.id
            values['delivered_at'] = now

        if not transition_if(DispatchRecord, dispatch_id, expected, values):
            current = reload(DispatchRecord, dispatch_id)
            logger.info(f"Dispatch {dispatch_id} changed underneath courier {courier.username}: now {current.motoboy_status}")
            raise InvalidTransition('DispatchRecord', dispatch_id, current.motoboy_status, target)

        record = reload(DispatchRecord, dispatch_id)

        if target == CourierStateMachine.ACCEPTED:
            event_type, description = 'DispatchAccepted', DispatchNarrator.courier_accepted(courier.username)
        elif target == CourierStateMachine.REJECTED:
            event_type, description = 'DispatchRejected', DispatchNarrator.courier_rejected(courier.username)
        else:
            event_type, description = 'DispatchDelivered', DispatchNarrator.delivered(courier.username)

        with persistence_guard():
            OrderEvent.record(
                order_id=record.order_id,
                dispatch_record_id=record.id,
                event_type=event_type,
                description=description,
                actor_id=courier.id,
                is_human_made=True,
                timestamp=now,
            )

        logger.info(f"Dispatch {dispatch_id}: {required} -> {target} by courier {courier.username}")
        return record

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """
        Expire every waiting record whose wait exceeded the deadline.

        Sets both manager_status and motoboy_status to expired. Commits per
        record so one expiry never depends on another.

        Returns:
            int: Number of records this call expired
        """
        now = now or self.clock.now()

        with persistence_guard():
            candidates = db.session.execute(
                select(DispatchRecord)
                .where(
                    DispatchRecord.motoboy_status == CourierStateMachine.WAITING,
                    DispatchRecord.manager_status == ManagerDispatchStatus.APPROVED,
                    DispatchRecord.manager_processed_at < cutoff(now, self.wait_seconds),
                )
                .order_by(DispatchRecord.manager_processed_at)
            ).scalars().all()

        expired = 0
        for record in candidates:
            if not dispatch_due_for_expiry(record, now, self.wait_seconds):
                continue
            with unit_of_work():
                changed = transition_if(
                    DispatchRecord,
                    record.id,
                    {
                        'motoboy_status': CourierStateMachine.WAITING,
                        'manager_status': ManagerDispatchStatus.APPROVED,
                    },
                    {
                        'motoboy_status': CourierStateMachine.EXPIRED,
                        'manager_status': ManagerDispatchStatus.EXPIRED,
                        'updated_at': now,
                    },
                )
                if changed:
                    OrderEvent.record(
                        order_id=record.order_id,
                        dispatch_record_id=record.id,
                        event_type='DispatchExpired',
                        description=DispatchNarrator.expired(self.wait_seconds),
                        is_human_made=False,
                        timestamp=now,
                    )
            if changed:
                expired += 1
                logger.info(f"Dispatch {record.id} expired (waiting since {record.manager_processed_at})")
            else:
                logger.debug(f"Dispatch {record.id} left waiting before it could expire")

        return expired

    def manager_cancel(
        self,
        dispatch_id: int,
        manager_id: int,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DispatchRecord:
        """
        Cancel a waiting dispatch record on behalf of the store manager.

        Both status columns become rejected and the source order is switched
        to pickup, so it never spawns another dispatch record.
        """
        now = now or self.clock.now()
        record = self.get(dispatch_id)

        if (record.motoboy_status != CourierStateMachine.WAITING
                or record.manager_status != ManagerDispatchStatus.APPROVED):
            raise InvalidTransition('DispatchRecord', dispatch_id, record.motoboy_status, CourierStateMachine.REJECTED)

        changed = transition_if(
            DispatchRecord,
            dispatch_id,
            {
                'motoboy_status': CourierStateMachine.WAITING,
                'manager_status': ManagerDispatchStatus.APPROVED,
            },
            {
                'motoboy_status': CourierStateMachine.REJECTED,
                'manager_status': ManagerDispatchStatus.REJECTED,
                'manager_notes': notes,
                'updated_at': now,
                'updated_by_id': manager_id,
            },
        )
        if not changed:
            current = reload(DispatchRecord, dispatch_id)
            raise InvalidTransition('DispatchRecord', dispatch_id, current.motoboy_status, CourierStateMachine.REJECTED)

        with persistence_guard():
            order = db.session.get(Order, record.order_id)
        order_notes = f"{notes} {CANCELLED_NOTE}" if notes else CANCELLED_NOTE
        if order is not None and order.manager_notes:
            order_notes = f"{order.manager_notes} {order_notes}"
        transition_if(
            Order,
            record.order_id,
            {'delivery_type': Order.DELIVERY_DELIVERY},
            {'delivery_type': Order.DELIVERY_PICKUP, 'manager_notes': order_notes, 'updated_at': now},
        )

        with persistence_guard():
            manager = db.session.get(User, manager_id)
            OrderEvent.record(
                order_id=record.order_id,
                dispatch_record_id=dispatch_id,
                event_type='DispatchCancelled',
                description=DispatchNarrator.manager_cancelled(manager.username if manager else str(manager_id), notes),
                actor_id=manager_id,
                is_human_made=True,
                timestamp=now,
            )

        logger.info(f"Dispatch {dispatch_id} cancelled by manager {manager_id}; order {record.order_id} switched to pickup")
        return reload(DispatchRecord, dispatch_id)

    def clear_terminal_records(self) -> int:
        """
        Delete dispatch records that can no longer change.

        Delivered records are only removed once credited. Credit outcomes go
        with them; timeline events and inventory lines keep their rows but
        lose the link.
        """
        terminal = or_(
            DispatchRecord.motoboy_status.in_([CourierStateMachine.REJECTED, CourierStateMachine.EXPIRED]),
            and_(
                DispatchRecord.motoboy_status == CourierStateMachine.DELIVERED,
                DispatchRecord.credited_at.is_not(None),
            ),
        )

        with persistence_guard():
            ids = db.session.execute(select(DispatchRecord.id).where(terminal)).scalars().all()
            if not ids:
                return 0

            db.session.execute(
                delete(InventoryCredit).where(InventoryCredit.dispatch_record_id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            db.session.execute(
                update(OrderEvent).where(OrderEvent.dispatch_record_id.in_(ids))
                .values(dispatch_record_id=None).execution_options(synchronize_session=False)
            )
            db.session.execute(
                update(InventoryLine).where(InventoryLine.dispatch_record_id.in_(ids))
                .values(dispatch_record_id=None).execution_options(synchronize_session=False)
            )
            db.session.execute(
                delete(DispatchRecord).where(DispatchRecord.id.in_(ids))
                .execution_options(synchronize_session=False)
            )

        logger.info(f"Cleared {len(ids)} terminal dispatch records")
        return len(ids)
