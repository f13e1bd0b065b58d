"""
OrderNarrator - Timeline text for order lifecycle events

Keeps audit wording out of the transition logic.
"""

from typing import Optional

AUTO_APPROVAL_NOTE_TEMPLATE = "Auto-approved after {seconds} seconds pending"


class OrderNarrator:

    @staticmethod
    def order_submitted(order, buyer_username: str) -> str:
        item_count = sum(line['quantity'] for line in order.items)
        return (
            f"Order submitted by {buyer_username}: {item_count} item(s), "
            f"total {order.total_amount:.2f}, {order.delivery_type}"
        )

    @staticmethod
    def order_approved(manager_username: str, notes: Optional[str] = None) -> str:
        comment = f"Order approved by {manager_username}"
        if notes:
            comment += f" | Notes: {notes}"
        return comment

    @staticmethod
    def order_rejected(manager_username: str, notes: Optional[str] = None) -> str:
        comment = f"Order rejected by {manager_username}"
        if notes:
            comment += f" | Notes: {notes}"
        return comment

    @staticmethod
    def auto_approval_note(seconds: int) -> str:
        return AUTO_APPROVAL_NOTE_TEMPLATE.format(seconds=seconds)

    @staticmethod
    def order_auto_approved(note: Optional[str]) -> str:
        return f"{note or 'Auto-approved'} (no manager action)"

    @staticmethod
    def sales_recorded(line_count: int, total: float) -> str:
        return f"{line_count} sale line(s) recorded, total {total:.2f}"
