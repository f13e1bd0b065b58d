"""
Scheduler/reconciler

One tick runs three independent steps: auto-approve overdue orders,
expire overdue dispatch records, credit delivered records. Every step is a
set of guarded, idempotent transitions, so the steps can run in any order
and a failing step does not stop the others; the next tick retries it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence

from rlv_store import db
from rlv_store.buisness.core.clock import Clock
from rlv_store.buisness.core.errors import DependencyUnavailable
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.scheduler.reconciler")

STEP_APPROVE = 'approved'
STEP_EXPIRE = 'expired'
STEP_CREDIT = 'credited'
DEFAULT_STEP_ORDER = (STEP_APPROVE, STEP_EXPIRE, STEP_CREDIT)


@dataclass
class TickResult:
    approved: int = 0
    expired: int = 0
    credited: int = 0
    errors: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            'approved': self.approved,
            'expired': self.expired,
            'credited': self.credited,
            'errors': list(self.errors),
        }


class SchedulerReconciler:

    def __init__(self, approval_gate, dispatch_manager, credit_processor, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self.steps: dict[str, Callable[[datetime], int]] = {
            STEP_APPROVE: approval_gate.auto_approve_overdue,
            STEP_EXPIRE: dispatch_manager.expire_overdue,
            STEP_CREDIT: credit_processor.process_pending,
        }

    def run_tick(self, now: Optional[datetime] = None, order: Sequence[str] = DEFAULT_STEP_ORDER) -> TickResult:
        """
        Run one reconciliation pass.

        Args:
            now: Tick time, defaults to the clock
            order: Step names in the order they should run

        Returns:
            TickResult: Counts per step plus the names of failed steps
        """
        now = now or self.clock.now()
        result = TickResult()

        for name in order:
            step = self.steps[name]
            try:
                count = step(now)
            except DependencyUnavailable as e:
                db.session.rollback()
                logger.error(f"Scheduler step '{name}' aborted, database unavailable: {e}")
                result.errors.append(f"{name}: {e}")
                continue
            except Exception as e:
                db.session.rollback()
                logger.error(f"Scheduler step '{name}' failed: {e}", exc_info=True)
                result.errors.append(f"{name}: {e}")
                continue
            setattr(result, name, count)

        logger.info(
            f"Scheduler tick at {now.isoformat()}: approved={result.approved} "
            f"expired={result.expired} credited={result.credited} errors={len(result.errors)}"
        )
        return result
