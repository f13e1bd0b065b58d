"""
Inventory credit processor

Moves the items of a delivered dispatch record into the buyer's inventory,
capped per (user, item). Runs at most once per record: completion is
marked with credited_at on the record and every item outcome is stored as
an InventoryCredit row (unique per record and item), so retries skip what
is already done and re-read the held quantity from the database.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from rlv_store import db
from rlv_store.buisness.core.clock import Clock
from rlv_store.buisness.core.errors import (
    BuyerNotFound,
    DependencyUnavailable,
    DispatchNotFound,
    InvalidTransition,
)
from rlv_store.buisness.core.guarded_update import transition_if, reload, persistence_guard
from rlv_store.buisness.dispatching.narrator import DispatchNarrator
from rlv_store.buisness.dispatching.state_machine import CourierStateMachine
from rlv_store.data.core.event_info.order_event import OrderEvent
from rlv_store.data.core.user_info.user import User
from rlv_store.data.dispatching.dispatch_record import DispatchRecord
from rlv_store.data.inventory.inventory_credit import InventoryCredit
from rlv_store.data.inventory.inventory_line import InventoryLine
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.inventory.credit_processor")

INVENTORY_ITEM_CAP = 10
STATUS_FAILED = 'failed'


@dataclass
class ItemCreditResult:
    item_id: str
    requested: int
    held_before: Optional[int] = None
    applied: int = 0
    shortfall: int = 0
    status: str = STATUS_FAILED
    error: Optional[str] = None
    already_credited: bool = False

    @classmethod
    def from_credit(cls, credit: InventoryCredit, already_credited: bool = True) -> "ItemCreditResult":
        return cls(
            item_id=credit.item_id,
            requested=credit.requested,
            held_before=credit.held_before,
            applied=credit.applied,
            shortfall=credit.shortfall,
            status=credit.status,
            error=credit.detail,
            already_credited=already_credited,
        )

    def to_dict(self) -> dict:
        return {
            'item_id': self.item_id,
            'requested': self.requested,
            'held_before': self.held_before,
            'applied': self.applied,
            'shortfall': self.shortfall,
            'status': self.status,
            'error': self.error,
        }


@dataclass
class CreditReport:
    dispatch_id: int
    items: list = field(default_factory=list)
    already_processed: bool = False
    completed: bool = False

    @property
    def applied_total(self) -> int:
        return sum(r.applied for r in self.items)

    @property
    def shortfall_total(self) -> int:
        return sum(r.shortfall for r in self.items)

    @property
    def failed(self) -> list:
        return [r for r in self.items if r.status == STATUS_FAILED]

    def to_dict(self) -> dict:
        return {
            'dispatch_id': self.dispatch_id,
            'already_processed': self.already_processed,
            'completed': self.completed,
            'applied_total': self.applied_total,
            'shortfall_total': self.shortfall_total,
            'items': [r.to_dict() for r in self.items],
        }


class InventoryCreditProcessor:

    def __init__(self, item_cap: int = INVENTORY_ITEM_CAP, clock: Optional[Clock] = None):
        self.item_cap = item_cap
        self.clock = clock or Clock()

    def process(self, dispatch_id: int, now: Optional[datetime] = None) -> CreditReport:
        """
        Credit one delivered dispatch record.

        Each item is committed on its own. A failing item is recorded in the
        report and does not stop the remaining items; the record is only
        marked credited when no item failed, so the next run retries the
        failures. A line that cannot be read at all gets a terminal
        "unusable" outcome instead and does not hold the record open.

        Args:
            dispatch_id: Delivered dispatch record
            now: Credit time, defaults to the clock

        Returns:
            CreditReport: Per-item outcomes

        Raises:
            DispatchNotFound: Unknown record
            InvalidTransition: Record is not delivered
            BuyerNotFound: The customer account is gone
            DependencyUnavailable: The database could not be reached
        """
        now = now or self.clock.now()

        record = reload(DispatchRecord, dispatch_id)
        if record is None:
            raise DispatchNotFound(dispatch_id)
        if record.motoboy_status != CourierStateMachine.DELIVERED:
            raise InvalidTransition('DispatchRecord', dispatch_id, record.motoboy_status, 'credited')

        report = CreditReport(dispatch_id=dispatch_id)
        if record.credited_at is not None:
            report.already_processed = True
            report.completed = True
            logger.debug(f"Dispatch {dispatch_id} already credited at {record.credited_at}")
            return report

        with persistence_guard():
            buyer = db.session.get(User, record.customer_id)
        if buyer is None:
            raise BuyerNotFound(record.customer_id)

        courier_username = record.courier.username if record.courier else 'courier'
        order_id = record.order_id

        requested, unusable = self._requested_quantities(record.items)
        for key, error in unusable:
            with persistence_guard():
                report.items.append(self._record_unusable(dispatch_id, buyer.id, key, error, now))

        for item_id, (item_name, quantity) in requested.items():
            try:
                with persistence_guard():
                    result = self._credit_item(
                        dispatch_id, buyer.id, item_id, item_name, quantity, courier_username, now
                    )
            except DependencyUnavailable:
                raise
            except Exception as e:
                db.session.rollback()
                logger.error(f"Dispatch {dispatch_id}: crediting {item_id} failed: {e}", exc_info=True)
                result = ItemCreditResult(item_id=item_id, requested=quantity, error=str(e))
            report.items.append(result)

        if report.failed:
            logger.error(
                f"Dispatch {dispatch_id}: {len(report.failed)} item(s) failed, record left uncredited for retry"
            )
            return report

        with persistence_guard():
            marked = transition_if(
                DispatchRecord,
                dispatch_id,
                {'motoboy_status': CourierStateMachine.DELIVERED, 'credited_at': None},
                {'credited_at': now},
            )
            if marked:
                OrderEvent.record(
                    order_id=order_id,
                    dispatch_record_id=dispatch_id,
                    event_type='InventoryCredited',
                    description=DispatchNarrator.inventory_credited(report.applied_total, report.shortfall_total),
                    is_human_made=False,
                    timestamp=now,
                )
            db.session.commit()

        report.completed = True
        report.already_processed = not marked
        logger.info(
            f"Dispatch {dispatch_id} credited to {buyer.username}: "
            f"applied={report.applied_total} shortfall={report.shortfall_total}"
        )
        return report

    def process_pending(self, now: Optional[datetime] = None) -> int:
        """
        Credit every delivered record that is not yet marked credited.

        Returns:
            int: Number of records completed by this call
        """
        now = now or self.clock.now()

        with persistence_guard():
            pending_ids = db.session.execute(
                select(DispatchRecord.id)
                .where(
                    DispatchRecord.motoboy_status == CourierStateMachine.DELIVERED,
                    DispatchRecord.credited_at.is_(None),
                )
                .order_by(DispatchRecord.delivered_at)
            ).scalars().all()

        credited = 0
        for dispatch_id in pending_ids:
            try:
                report = self.process(dispatch_id, now)
            except DependencyUnavailable:
                raise
            except (BuyerNotFound, DispatchNotFound, InvalidTransition) as e:
                db.session.rollback()
                logger.error(f"Dispatch {dispatch_id} skipped: {e}")
                continue
            if report.completed and not report.already_processed:
                credited += 1

        return credited

    def held_quantity(self, user_id: int, item_id: str) -> int:
        """Current held quantity, always summed fresh from the inventory lines."""
        return db.session.execute(
            select(func.coalesce(func.sum(InventoryLine.quantity), 0))
            .where(InventoryLine.user_id == user_id, InventoryLine.item_id == item_id)
        ).scalar_one()

    def _credit_item(self, dispatch_id, user_id, item_id, item_name, quantity, sent_by, now) -> ItemCreditResult:
        existing = self._existing_credit(dispatch_id, item_id)
        if existing is not None:
            logger.debug(f"Dispatch {dispatch_id}: {item_id} already credited ({existing.status})")
            return ItemCreditResult.from_credit(existing)

        held = int(self.held_quantity(user_id, item_id))
        creditable = max(0, self.item_cap - held)
        applied = min(quantity, creditable)
        shortfall = quantity - applied

        if shortfall == 0:
            status = InventoryCredit.STATUS_CREDITED
        elif applied == 0:
            status = InventoryCredit.STATUS_CAPACITY_EXCEEDED
        else:
            status = InventoryCredit.STATUS_PARTIAL

        if applied > 0:
            db.session.add(InventoryLine(
                user_id=user_id,
                item_id=item_id,
                item_name=item_name,
                quantity=applied,
                sent_by_username=sent_by,
                dispatch_record_id=dispatch_id,
                received_at=now,
            ))
        credit = InventoryCredit(
            dispatch_record_id=dispatch_id,
            user_id=user_id,
            item_id=item_id,
            requested=quantity,
            held_before=held,
            applied=applied,
            shortfall=shortfall,
            status=status,
            created_at=now,
        )
        db.session.add(credit)

        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent run wrote this item first
            db.session.rollback()
            existing = self._existing_credit(dispatch_id, item_id)
            if existing is None:
                raise
            logger.info(f"Dispatch {dispatch_id}: {item_id} credited concurrently, keeping that outcome")
            return ItemCreditResult.from_credit(existing)

        if applied == 0:
            logger.warning(
                f"Dispatch {dispatch_id}: {item_id} skipped, user {user_id} already holds {held}/{self.item_cap}"
            )
        elif shortfall:
            logger.warning(
                f"Dispatch {dispatch_id}: {item_id} truncated to {applied} of {quantity} "
                f"(held {held}/{self.item_cap}, shortfall {shortfall})"
            )
        else:
            logger.info(f"Dispatch {dispatch_id}: {item_id} +{applied} (held {held} -> {held + applied})")

        return ItemCreditResult.from_credit(credit, already_credited=False)

    @staticmethod
    def _existing_credit(dispatch_id, item_id) -> Optional[InventoryCredit]:
        return db.session.execute(
            select(InventoryCredit).where(
                InventoryCredit.dispatch_record_id == dispatch_id,
                InventoryCredit.item_id == item_id,
            )
        ).scalar_one_or_none()

    def _record_unusable(self, dispatch_id, user_id, key, error, now) -> ItemCreditResult:
        existing = self._existing_credit(dispatch_id, key)
        if existing is not None:
            return ItemCreditResult.from_credit(existing)

        credit = InventoryCredit(
            dispatch_record_id=dispatch_id,
            user_id=user_id,
            item_id=key,
            requested=0,
            held_before=0,
            applied=0,
            shortfall=0,
            status=InventoryCredit.STATUS_UNUSABLE,
            detail=error[:255],
            created_at=now,
        )
        db.session.add(credit)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            existing = self._existing_credit(dispatch_id, key)
            if existing is None:
                raise
            return ItemCreditResult.from_credit(existing)

        logger.error(f"Dispatch {dispatch_id}: line {key} is unusable and will not be credited: {error}")
        return ItemCreditResult.from_credit(credit, already_credited=False)

    @staticmethod
    def _requested_quantities(items):
        """
        Sum requested quantities per item, in first-seen order.

        Returns:
            tuple: (OrderedDict item_id -> (name, quantity),
                    list of (key, error) for lines that cannot be read)
        """
        requested = OrderedDict()
        unusable = []
        for index, raw in enumerate(items or []):
            item_id = None
            try:
                item_id = str(raw.get('item_id') or raw.get('id') or raw['name'])
                quantity = int(raw['quantity'])
                if quantity < 1:
                    raise ValueError(f"quantity must be positive, got {quantity}")
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                # Keyed by position so it never collides with a real item
                unusable.append((f"line{index}:{item_id or '?'}"[:80], f"unusable line {raw!r}: {e}"))
                continue
            name, total = requested.get(item_id, (raw.get('name') or item_id, 0))
            requested[item_id] = (name, total + quantity)
        return requested, unusable
