"""
OrderLifecycle - entry point for UI and CLI collaborators

Wires cart, ledger, approval gate, dispatch manager, credit processor and
scheduler together, checks the actor's role, and owns the transaction of
each human-initiated operation. Actor identity is always an explicit
argument.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from rlv_store import db
from rlv_store.buisness.cart.cart_aggregator import CartAggregator
from rlv_store.buisness.core.clock import Clock
from rlv_store.buisness.core.errors import NotFoundError, PermissionDenied
from rlv_store.buisness.core.guarded_update import persistence_guard, unit_of_work
from rlv_store.buisness.dispatching.dispatch_manager import DispatchManager
from rlv_store.buisness.inventory.credit_processor import InventoryCreditProcessor, INVENTORY_ITEM_CAP
from rlv_store.buisness.ordering.approval_gate import ApprovalGate
from rlv_store.buisness.ordering.order_ledger import OrderLedger
from rlv_store.buisness.scheduler.deadlines import DISPATCH_WAIT_SECONDS, ORDER_AUTO_APPROVE_SECONDS
from rlv_store.buisness.scheduler.reconciler import SchedulerReconciler, TickResult, DEFAULT_STEP_ORDER
from rlv_store.data.core.user_info.user import User
from rlv_store.data.dispatching.dispatch_record import DispatchRecord
from rlv_store.data.ordering.order import Order
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.lifecycle")


class OrderLifecycle:

    def __init__(
        self,
        clock: Optional[Clock] = None,
        auto_approve_seconds: int = ORDER_AUTO_APPROVE_SECONDS,
        dispatch_wait_seconds: int = DISPATCH_WAIT_SECONDS,
        inventory_item_cap: int = INVENTORY_ITEM_CAP,
    ):
        self.clock = clock or Clock()
        self.dispatch_manager = DispatchManager(wait_seconds=dispatch_wait_seconds, clock=self.clock)
        self.ledger = OrderLedger(self.dispatch_manager, clock=self.clock)
        self.approval_gate = ApprovalGate(self.ledger, auto_approve_seconds=auto_approve_seconds)
        self.credit_processor = InventoryCreditProcessor(item_cap=inventory_item_cap, clock=self.clock)
        self.reconciler = SchedulerReconciler(
            self.approval_gate, self.dispatch_manager, self.credit_processor, clock=self.clock
        )

    @classmethod
    def from_config(cls, config, clock: Optional[Clock] = None) -> "OrderLifecycle":
        """Build from a Flask config mapping."""
        return cls(
            clock=clock,
            auto_approve_seconds=config.get('ORDER_AUTO_APPROVE_SECONDS', ORDER_AUTO_APPROVE_SECONDS),
            dispatch_wait_seconds=config.get('DISPATCH_WAIT_SECONDS', DISPATCH_WAIT_SECONDS),
            inventory_item_cap=config.get('INVENTORY_ITEM_CAP', INVENTORY_ITEM_CAP),
        )

    def submit_order(
        self,
        cart: CartAggregator,
        store_id: str,
        buyer_id: int,
        delivery_type: str,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Turn the buyer's cart for store_id into a pending order.

        The cart for that store is cleared only after the order is committed.

        Raises:
            BuyerNotFound, StoreNotFound, EmptyCart, InsufficientBalance
        """
        with unit_of_work():
            order = self.ledger.submit(cart, store_id, buyer_id, delivery_type, now=now)
        cart.clear(store_id)
        return order

    def manager_decide(
        self,
        order_id: int,
        manager_id: int,
        decision: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Approve or reject an order as the manager of its store.

        Raises:
            OrderNotFound: Unknown order
            PermissionDenied: Actor does not manage the order's store
            AlreadyResolved: Order already decided; nothing was changed
        """
        with unit_of_work():
            manager = self._actor(manager_id, User.ROLE_MANAGER)
            order = self.ledger.get(order_id)
            self._require_store(manager, order.store_id)
            order = self.approval_gate.decide(order_id, manager.id, decision, notes=notes, now=now)
        return order

    def courier_decide(
        self,
        dispatch_id: int,
        courier_id: int,
        decision: str,
        now: Optional[datetime] = None,
    ) -> DispatchRecord:
        """
        Accept, reject or deliver a dispatch record as a courier.

        Raises:
            DispatchNotFound: Unknown record
            PermissionDenied: Actor is not a courier
            InvalidTransition: Record is not in the required state
        """
        with unit_of_work():
            courier = self._actor(courier_id, User.ROLE_COURIER)
            record = self.dispatch_manager.courier_decide(dispatch_id, courier.id, decision, now=now)
        return record

    def manager_cancel_dispatch(
        self,
        dispatch_id: int,
        manager_id: int,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DispatchRecord:
        with unit_of_work():
            manager = self._actor(manager_id, User.ROLE_MANAGER)
            record = self.dispatch_manager.get(dispatch_id)
            self._require_store(manager, record.store_id)
            record = self.dispatch_manager.manager_cancel(dispatch_id, manager.id, notes=notes, now=now)
        return record

    def clear_dispatch_records(self, admin_id: int) -> int:
        with unit_of_work():
            self._actor(admin_id, User.ROLE_ADMIN)
            return self.dispatch_manager.clear_terminal_records()

    def credit_dispatch(self, dispatch_id: int, now: Optional[datetime] = None):
        """Run the credit processor for one record outside the scheduler."""
        return self.credit_processor.process(dispatch_id, now=now)

    def run_scheduler_tick(self, now: Optional[datetime] = None, order=DEFAULT_STEP_ORDER) -> TickResult:
        return self.reconciler.run_tick(now=now, order=order)

    @staticmethod
    def _actor(user_id, role) -> User:
        with persistence_guard():
            user = db.session.get(User, user_id) if user_id is not None else None
        if user is None or not user.is_active:
            raise NotFoundError('User', user_id)
        if not user.has_role(role):
            logger.warning(f"User {user.username} ({user.role}) attempted a {role} operation")
            raise PermissionDenied(f"{role} role required")
        return user

    @staticmethod
    def _require_store(manager: User, store_id: str) -> None:
        if manager.is_admin:
            return
        if manager.store_id != store_id:
            logger.warning(f"Manager {manager.username} attempted to act on store {store_id}")
            raise PermissionDenied(f"Manager {manager.username} does not manage store {store_id}")
