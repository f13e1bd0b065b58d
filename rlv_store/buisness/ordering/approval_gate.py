"""
Manager approval gate

Two ways out of pending: an explicit manager decision, or auto-approval
once an order has been pending for the configured time. Both end in
OrderLedger.approve; only a manager can reject.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select

from rlv_store import db
from rlv_store.buisness.core.errors import AlreadyResolved, InsufficientBalance, OrderNotFound
from rlv_store.buisness.core.guarded_update import persistence_guard, unit_of_work
from rlv_store.buisness.ordering.narrator import OrderNarrator
from rlv_store.buisness.ordering.order_ledger import OrderLedger
from rlv_store.buisness.ordering.state_machine import OrderStateMachine
from rlv_store.buisness.scheduler.deadlines import (
    ORDER_AUTO_APPROVE_SECONDS,
    cutoff,
    order_due_for_auto_approval,
)
from rlv_store.data.ordering.order import Order
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.ordering.approval_gate")


class ApprovalGate:

    def __init__(self, ledger: OrderLedger, auto_approve_seconds: int = ORDER_AUTO_APPROVE_SECONDS):
        self.ledger = ledger
        self.auto_approve_seconds = auto_approve_seconds

    def decide(
        self,
        order_id: int,
        manager_id: int,
        decision: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Apply a human decision ("approve" or "reject").

        Raises:
            ValueError: Unknown decision
            AlreadyResolved: The order was already decided
        """
        target = OrderStateMachine.target_for(decision)
        if target == OrderStateMachine.APPROVED:
            return self.ledger.approve(order_id, manager_id, notes=notes, now=now)
        return self.ledger.reject(order_id, manager_id, notes=notes, now=now)

    def auto_approve_overdue(self, now: Optional[datetime] = None) -> int:
        """
        Approve every order pending for auto_approve_seconds or longer.

        Each order commits on its own. An order decided by a manager in the
        meantime is skipped; one the buyer can no longer pay stays pending
        for the manager to reject.

        Returns:
            int: Number of orders this call approved
        """
        now = now or self.ledger.clock.now()
        note = OrderNarrator.auto_approval_note(self.auto_approve_seconds)

        with persistence_guard():
            candidates = db.session.execute(
                select(Order)
                .where(
                    Order.status == OrderStateMachine.PENDING,
                    Order.created_at <= cutoff(now, self.auto_approve_seconds),
                )
                .order_by(Order.created_at)
            ).scalars().all()

        approved = 0
        for order in candidates:
            if not order_due_for_auto_approval(order, now, self.auto_approve_seconds):
                continue
            order_id = order.id
            try:
                with unit_of_work():
                    self.ledger.approve(order_id, None, notes=note, now=now, auto=True)
            except (AlreadyResolved, OrderNotFound) as e:
                logger.info(f"Auto-approval of order {order_id} skipped: {e}")
                continue
            except InsufficientBalance as e:
                logger.warning(f"Auto-approval of order {order_id} held back, left pending: {e}")
                continue
            approved += 1
            logger.info(f"Order {order_id} auto-approved after {self.auto_approve_seconds}s pending")

        return approved
