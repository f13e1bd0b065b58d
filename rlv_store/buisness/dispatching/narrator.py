"""
DispatchNarrator - Timeline text for dispatch record events
"""

from typing import Optional


class DispatchNarrator:

    @staticmethod
    def dispatch_created(record) -> str:
        return f"Dispatch record {record.id} created for {record.customer_username}, waiting for a courier"

    @staticmethod
    def courier_accepted(courier_username: str) -> str:
        return f"Courier {courier_username} accepted the delivery"

    @staticmethod
    def courier_rejected(courier_username: str) -> str:
        return f"Courier {courier_username} rejected the delivery"

    @staticmethod
    def delivered(courier_username: str) -> str:
        return f"Delivered by courier {courier_username}"

    @staticmethod
    def expired(seconds: int) -> str:
        return f"Dispatch expired: no courier accepted within {seconds} seconds"

    @staticmethod
    def manager_cancelled(manager_username: str, notes: Optional[str] = None) -> str:
        comment = f"Courier delivery cancelled by {manager_username}; order switched to pickup"
        if notes:
            comment += f" | Notes: {notes}"
        return comment

    @staticmethod
    def inventory_credited(applied_total: int, shortfall_total: int) -> str:
        comment = f"{applied_total} unit(s) credited to the buyer's inventory"
        if shortfall_total:
            comment += f" | {shortfall_total} unit(s) dropped by the inventory cap"
        return comment
