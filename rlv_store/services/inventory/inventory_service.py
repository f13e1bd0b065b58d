"""
Inventory Service
Read side of the buyer inventory.
"""

from typing import Dict, List

from sqlalchemy import func

from rlv_store import db
from rlv_store.data.inventory.inventory_credit import InventoryCredit
from rlv_store.data.inventory.inventory_line import InventoryLine


class InventoryService:

    @staticmethod
    def held_quantity(user_id: int, item_id: str) -> int:
        total = (
            db.session.query(func.coalesce(func.sum(InventoryLine.quantity), 0))
            .filter(InventoryLine.user_id == user_id, InventoryLine.item_id == item_id)
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def summary_for_user(user_id: int) -> List[Dict]:
        """Held quantity per item, aggregated over all inventory lines."""
        rows = (
            db.session.query(
                InventoryLine.item_id,
                func.max(InventoryLine.item_name),
                func.sum(InventoryLine.quantity),
            )
            .filter(InventoryLine.user_id == user_id)
            .group_by(InventoryLine.item_id)
            .order_by(InventoryLine.item_id)
            .all()
        )
        return [
            {'item_id': item_id, 'item_name': item_name or item_id, 'quantity': int(quantity)}
            for item_id, item_name, quantity in rows
        ]

    @staticmethod
    def credits_for_dispatch(dispatch_id: int) -> List[Dict]:
        credits = (
            InventoryCredit.query
            .filter(InventoryCredit.dispatch_record_id == dispatch_id)
            .order_by(InventoryCredit.id.asc())
            .all()
        )
        return [c.to_dict() for c in credits]
