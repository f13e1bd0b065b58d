"""
Deadline predicates for time-driven transitions.

Pure functions of (record timestamps, now). Nothing here reads a clock.
"""

from datetime import datetime, timedelta
from typing import Optional

ORDER_AUTO_APPROVE_SECONDS = 60
DISPATCH_WAIT_SECONDS = 60


def cutoff(now: datetime, after_seconds: int) -> datetime:
    """Latest start time that is overdue at `now`."""
    return now - timedelta(seconds=after_seconds)


def is_overdue(started_at: Optional[datetime], now: datetime, after_seconds: int) -> bool:
    """True once `after_seconds` or more have passed since `started_at`."""
    if started_at is None:
        return False
    return now - started_at >= timedelta(seconds=after_seconds)


def has_exceeded(started_at: Optional[datetime], now: datetime, after_seconds: int) -> bool:
    """True only once strictly more than `after_seconds` have passed."""
    if started_at is None:
        return False
    return now - started_at > timedelta(seconds=after_seconds)


def order_due_for_auto_approval(order, now: datetime, after_seconds: int = ORDER_AUTO_APPROVE_SECONDS) -> bool:
    return order.status == 'pending' and is_overdue(order.created_at, now, after_seconds)


def dispatch_due_for_expiry(record, now: datetime, after_seconds: int = DISPATCH_WAIT_SECONDS) -> bool:
    # Measured from entry into waiting, not from row creation
    return (
        record.motoboy_status == 'waiting'
        and record.manager_status == 'approved'
        and has_exceeded(record.manager_processed_at, now, after_seconds)
    )
