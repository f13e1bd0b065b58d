"""
State machine for the order decision lifecycle

Orders are created pending and resolved exactly once.
"""

from typing import Dict, Set
from rlv_store.buisness.core.errors import InvalidTransition


class OrderStateMachine:
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    TERMINAL_STATES = {APPROVED, REJECTED}

    TRANSITIONS: Dict[str, Set[str]] = {
        PENDING: {APPROVED, REJECTED},
        # APPROVED and REJECTED are terminal
    }

    # decision name -> target status
    DECISIONS = {
        'approve': APPROVED,
        'reject': REJECTED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if transition is valid.

        Staying in the same state is not a transition; a second decision on a
        resolved order is reported as already resolved.
        """
        if from_status in cls.TERMINAL_STATES:
            return False
        return to_status in cls.TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, order_id, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransition('Order', order_id, from_status, to_status)

    @classmethod
    def target_for(cls, decision: str) -> str:
        try:
            return cls.DECISIONS[decision]
        except KeyError:
            raise ValueError(f"Unknown order decision: {decision}") from None

    @classmethod
    def get_allowed_transitions(cls, from_status: str) -> Set[str]:
        if from_status in cls.TERMINAL_STATES:
            return set()
        return cls.TRANSITIONS.get(from_status, set())
