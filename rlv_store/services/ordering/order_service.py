"""
Order Service
Presentation service for order and sales data retrieval.
"""

from typing import Dict, List, Optional

from rlv_store import db
from rlv_store.data.core.event_info.order_event import OrderEvent
from rlv_store.data.ordering.order import Order
from rlv_store.data.ordering.store_sale import StoreSale
from rlv_store.data.stores.store import Store


class OrderService:

    @staticmethod
    def serialize(order: Order, include_events: bool = False) -> Dict:
        data = order.to_dict(include_audit_fields=False)
        data['created_at'] = order.created_at.isoformat() if order.created_at else None
        data['buyer_username'] = order.buyer.username if order.buyer else None
        if include_events:
            data['events'] = OrderService.timeline(order.id)
        return data

    @staticmethod
    def pending_for_store(store_id: str) -> List[Dict]:
        """Pending orders of one store, oldest first (the order they auto-approve in)."""
        orders = (
            Order.query
            .filter(Order.store_id == store_id, Order.status == Order.STATUS_PENDING)
            .order_by(Order.created_at.asc())
            .all()
        )
        return [OrderService.serialize(o) for o in orders]

    @staticmethod
    def for_buyer(buyer_id: int, status: Optional[str] = None, limit: int = 50) -> List[Dict]:
        query = Order.query.filter(Order.buyer_id == buyer_id)
        if status:
            query = query.filter(Order.status == status)
        orders = query.order_by(Order.created_at.desc()).limit(limit).all()
        return [OrderService.serialize(o, include_events=True) for o in orders]

    @staticmethod
    def timeline(order_id: int) -> List[Dict]:
        events = (
            OrderEvent.query
            .filter(OrderEvent.order_id == order_id)
            .order_by(OrderEvent.timestamp.asc(), OrderEvent.id.asc())
            .all()
        )
        return [
            {
                'event_type': e.event_type,
                'description': e.description,
                'is_human_made': e.is_human_made,
                'actor_id': e.actor_id,
                'dispatch_record_id': e.dispatch_record_id,
                'timestamp': e.timestamp.isoformat() if e.timestamp else None,
            }
            for e in events
        ]

    @staticmethod
    def recent_sales(store_id: str, limit: int = 100) -> Dict:
        store = db.session.get(Store, store_id, populate_existing=True)
        sales = (
            StoreSale.query
            .filter(StoreSale.store_id == store_id)
            .order_by(StoreSale.sold_at.desc(), StoreSale.id.desc())
            .limit(limit)
            .all()
        )
        return {
            'sales': [s.to_dict() for s in sales],
            'total_amount': round(sum(s.amount for s in sales), 2),
            'store_balance': store.balance if store else 0.0,
        }
