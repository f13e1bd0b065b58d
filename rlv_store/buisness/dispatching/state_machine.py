"""
State machines for dispatch records

A dispatch record carries two status columns. The courier side
(motoboy_status) is the real lifecycle; the manager side
(manager_status) only moves when the record expires or a manager
cancels it.
"""

from typing import Dict, Set
from rlv_store.buisness.core.errors import InvalidTransition


class CourierStateMachine:
    """
    waiting  -accept->  accepted
    waiting  -reject->  rejected
    waiting  -expire->  expired    (scheduler only)
    waiting  -cancel->  rejected   (store manager only)
    accepted -deliver-> delivered
    """

    WAITING = 'waiting'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    DELIVERED = 'delivered'
    EXPIRED = 'expired'

    ACTIVE_STATES = {WAITING, ACCEPTED}
    TERMINAL_STATES = {REJECTED, DELIVERED, EXPIRED}

    TRANSITIONS: Dict[str, Set[str]] = {
        WAITING: {ACCEPTED, REJECTED, EXPIRED},
        ACCEPTED: {DELIVERED},
    }

    # courier decision -> (required current status, target status)
    DECISIONS = {
        'accept': (WAITING, ACCEPTED),
        'reject': (WAITING, REJECTED),
        'deliver': (ACCEPTED, DELIVERED),
        'complete': (ACCEPTED, DELIVERED),
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        if from_status in cls.TERMINAL_STATES:
            return False
        return to_status in cls.TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, dispatch_id, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransition('DispatchRecord', dispatch_id, from_status, to_status)

    @classmethod
    def resolve_decision(cls, decision: str):
        """
        Returns:
            tuple: (required current status, target status)

        Raises:
            ValueError: Unknown decision name
        """
        try:
            return cls.DECISIONS[decision]
        except KeyError:
            raise ValueError(f"Unknown courier decision: {decision}") from None


class ManagerDispatchStatus:
    APPROVED = 'approved'
    REJECTED = 'rejected'
    EXPIRED = 'expired'
