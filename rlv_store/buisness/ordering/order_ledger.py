"""
OrderLedger - the only write path for orders

submit() creates an immutable, priced snapshot of a cart. approve() and
reject() resolve a pending order through a status-guarded update, so a
second decision (human or scheduler) observes AlreadyResolved and none of
the approval side effects run twice.

Methods flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import update

from rlv_store import db
from rlv_store.buisness.cart.cart_aggregator import CartAggregator
from rlv_store.buisness.core.clock import Clock
from rlv_store.buisness.core.errors import (
    AlreadyResolved,
    BuyerNotFound,
    EmptyCart,
    InsufficientBalance,
    OrderNotFound,
    StoreNotFound,
    ValidationError,
)
from rlv_store.buisness.core.guarded_update import transition_if, reload, persistence_guard
from rlv_store.buisness.ordering.narrator import OrderNarrator
from rlv_store.buisness.ordering.state_machine import OrderStateMachine
from rlv_store.data.core.event_info.order_event import OrderEvent
from rlv_store.data.core.user_info.user import User
from rlv_store.data.ordering.order import Order
from rlv_store.data.ordering.store_sale import StoreSale
from rlv_store.data.stores.store import Store
from rlv_store.logger import get_logger

if TYPE_CHECKING:
    from rlv_store.buisness.dispatching.dispatch_manager import DispatchManager

logger = get_logger("rlv_store.ordering.ledger")


class OrderLedger:

    def __init__(self, dispatch_manager: 'DispatchManager', clock: Optional[Clock] = None):
        self.dispatch_manager = dispatch_manager
        self.clock = clock or Clock()

    def get(self, order_id: int) -> Order:
        with persistence_guard():
            order = db.session.get(Order, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def submit(
        self,
        cart: CartAggregator,
        store_id: str,
        buyer_id: int,
        delivery_type: str,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Snapshot the cart for store_id into a new pending order.

        The cart itself is left untouched; it is cleared by the caller once
        the order is committed.

        Args:
            cart: The buyer's cart
            store_id: Store being bought from
            buyer_id: Buyer placing the order
            delivery_type: "pickup" or "delivery"
            now: Submit time, defaults to the clock

        Returns:
            Order: The flushed order (status pending)

        Raises:
            BuyerNotFound: No active account for buyer_id
            StoreNotFound: Unknown store
            EmptyCart: Nothing in the cart for this store
            InsufficientBalance: Wallet below the order total
        """
        now = now or self.clock.now()

        if delivery_type not in Order.DELIVERY_TYPES:
            raise ValidationError(f"Invalid delivery type: {delivery_type}")

        with persistence_guard():
            buyer = db.session.get(User, buyer_id) if buyer_id is not None else None
            store = db.session.get(Store, store_id)

        if buyer is None or not buyer.is_active:
            logger.warning(f"Order submit refused: buyer {buyer_id} has no account record")
            raise BuyerNotFound(buyer_id)
        if store is None or not store.is_active:
            raise StoreNotFound(store_id)

        lines = cart.lines(store_id)
        if not lines:
            raise EmptyCart(store_id)

        total = cart.total(store_id)
        if (buyer.wallet_balance or 0.0) < total:
            logger.info(f"Order submit refused: buyer {buyer.username} balance {buyer.wallet_balance} < {total}")
            raise InsufficientBalance(buyer_id, buyer.wallet_balance or 0.0, total)

        order = Order(
            buyer_id=buyer.id,
            store_id=store.id,
            items=[line.to_dict() for line in lines],
            total_amount=total,
            delivery_type=delivery_type,
            status=OrderStateMachine.PENDING,
            created_at=now,
            updated_at=now,
            created_by_id=buyer.id,
            updated_by_id=buyer.id,
        )
        with persistence_guard():
            db.session.add(order)
            db.session.flush()

            OrderEvent.record(
                order_id=order.id,
                event_type='OrderSubmitted',
                description=OrderNarrator.order_submitted(order, buyer.username),
                actor_id=buyer.id,
                is_human_made=True,
                timestamp=now,
            )

        logger.info(f"Order {order.id} submitted by {buyer.username} at {store.id}: total={total} type={delivery_type}")
        return order

    def approve(
        self,
        order_id: int,
        manager_id: Optional[int],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        auto: bool = False,
    ) -> Order:
        """
        Approve a pending order.

        Side effects, applied only by the caller that wins the guard: the
        order total moves from the buyer's wallet to the store balance, one
        StoreSale per line, a timeline event and, for delivery orders, the
        dispatch record. A refused debit raises before anything is committed;
        the caller rolls the approval back.

        Args:
            order_id: Order to approve
            manager_id: Approving manager, None for the scheduler
            notes: Manager notes (auto-approval writes its own note)
            now: Decision time, defaults to the clock
            auto: True when approved by the scheduler

        Raises:
            OrderNotFound: Unknown order
            InsufficientBalance: The buyer can no longer pay the order total
            AlreadyResolved: The order is no longer pending
        """
        now = now or self.clock.now()
        self._require_funds(self.get(order_id))
        order = self._resolve(order_id, OrderStateMachine.APPROVED, manager_id, notes, now, auto)
        self._settle(order)

        buyer = order.buyer
        sales = [
            StoreSale(
                order_id=order.id,
                store_id=order.store_id,
                buyer_id=order.buyer_id,
                buyer_username=buyer.username if buyer else str(order.buyer_id),
                item_id=line['item_id'],
                item_name=line['name'],
                quantity=line['quantity'],
                amount=round(line['unit_price'] * line['quantity'], 2),
                sold_at=now,
            )
            for line in order.items
        ]

        with persistence_guard():
            db.session.add_all(sales)
            if auto:
                description = OrderNarrator.order_auto_approved(notes)
            else:
                description = OrderNarrator.order_approved(self._username(manager_id), notes)
            OrderEvent.record(
                order_id=order.id,
                event_type='OrderApproved',
                description=description,
                actor_id=manager_id,
                is_human_made=not auto,
                timestamp=now,
            )
            OrderEvent.record(
                order_id=order.id,
                event_type='SalesRecorded',
                description=OrderNarrator.sales_recorded(len(sales), order.total_amount),
                actor_id=manager_id,
                is_human_made=False,
                timestamp=now,
            )

        if order.delivery_type == Order.DELIVERY_DELIVERY:
            self.dispatch_manager.create_for_order(order, now)

        logger.info(f"Order {order.id} approved ({'auto' if auto else f'manager {manager_id}'})")
        return order

    def reject(
        self,
        order_id: int,
        manager_id: int,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """Reject a pending order. Only managers reject; the scheduler never does."""
        if manager_id is None:
            raise ValidationError("Rejection requires a manager")
        now = now or self.clock.now()
        order = self._resolve(order_id, OrderStateMachine.REJECTED, manager_id, notes, now, auto=False)

        with persistence_guard():
            OrderEvent.record(
                order_id=order.id,
                event_type='OrderRejected',
                description=OrderNarrator.order_rejected(self._username(manager_id), notes),
                actor_id=manager_id,
                is_human_made=True,
                timestamp=now,
            )

        logger.info(f"Order {order.id} rejected by manager {manager_id}")
        return order

    def _resolve(self, order_id, target, manager_id, notes, now, auto) -> Order:
        order = self.get(order_id)
        if not OrderStateMachine.can_transition(order.status, target):
            logger.info(f"Order {order_id} already {order.status}; {target} ignored")
            raise AlreadyResolved(order_id, order.status, target)

        values = {
            'status': target,
            'decided_at': now,
            'decided_by_id': manager_id,
            'manager_notes': notes,
            'auto_approved': auto,
            'updated_at': now,
            'updated_by_id': manager_id,
        }
        if target == OrderStateMachine.APPROVED:
            values['approved_at'] = now

        if not transition_if(Order, order_id, {'status': OrderStateMachine.PENDING}, values):
            current = reload(Order, order_id)
            logger.info(f"Order {order_id} lost the race to another decision ({current.status})")
            raise AlreadyResolved(order_id, current.status, target)

        return reload(Order, order_id)

    @staticmethod
    def _username(user_id) -> str:
        if user_id is None:
            return 'system'
        with persistence_guard():
            user = db.session.get(User, user_id)
        return user.username if user else f'user {user_id}'

    @staticmethod
    def _require_funds(order: Order) -> None:
        if order.status != OrderStateMachine.PENDING:
            return
        buyer = reload(User, order.buyer_id)
        balance = buyer.wallet_balance if buyer else 0.0
        if (balance or 0.0) < order.total_amount:
            logger.info(f"Order {order.id} not approved: buyer balance {balance} < {order.total_amount}")
            raise InsufficientBalance(order.buyer_id, balance or 0.0, order.total_amount)

    @staticmethod
    def _settle(order: Order) -> None:
        """Debit the buyer and credit the store; the debit only applies while the balance covers it."""
        total = order.total_amount
        with persistence_guard():
            debited = db.session.execute(
                update(User)
                .where(User.id == order.buyer_id, User.wallet_balance >= total)
                .values(wallet_balance=User.wallet_balance - total)
                .execution_options(synchronize_session=False)
            ).rowcount == 1
            if not debited:
                buyer = reload(User, order.buyer_id)
                balance = (buyer.wallet_balance if buyer else 0.0) or 0.0
                logger.warning(f"Order {order.id}: debit of {total} refused, buyer balance {balance}")
                raise InsufficientBalance(order.buyer_id, balance, total)

            db.session.execute(
                update(Store)
                .where(Store.id == order.store_id)
                .values(balance=Store.balance + total)
                .execution_options(synchronize_session=False)
            )
        logger.info(f"Order {order.id}: {total} moved from buyer {order.buyer_id} to store {order.store_id}")
