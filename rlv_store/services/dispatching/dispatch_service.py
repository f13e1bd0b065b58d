"""
Dispatch Service
Presentation service for courier queues, manager lists and the status report.
"""

from datetime import datetime
from typing import Dict, List, Optional

from rlv_store.buisness.dispatching.state_machine import CourierStateMachine, ManagerDispatchStatus
from rlv_store.buisness.scheduler.deadlines import cutoff, ORDER_AUTO_APPROVE_SECONDS
from rlv_store.buisness.core.clock import utcnow
from rlv_store.data.dispatching.dispatch_record import DispatchRecord
from rlv_store.data.ordering.order import Order
from rlv_store.services.inventory.inventory_service import InventoryService


class DispatchService:

    @staticmethod
    def serialize(record: DispatchRecord, include_credits: bool = False) -> Dict:
        data = record.to_dict(include_audit_fields=False)
        data['created_at'] = record.created_at.isoformat() if record.created_at else None
        data['courier_username'] = record.courier.username if record.courier else None
        if include_credits:
            data['credits'] = InventoryService.credits_for_dispatch(record.id)
        return data

    @staticmethod
    def courier_queue(courier_id: Optional[int] = None) -> List[Dict]:
        """
        Records a courier can act on, newest first.

        Waiting records are open to every courier; accepted records are only
        listed for the courier who accepted them (all of them when courier_id
        is None).
        """
        query = DispatchRecord.query.filter(
            DispatchRecord.manager_status == ManagerDispatchStatus.APPROVED,
            DispatchRecord.motoboy_status.in_(list(CourierStateMachine.ACTIVE_STATES)),
        )
        records = query.order_by(DispatchRecord.created_at.desc(), DispatchRecord.id.desc()).all()
        if courier_id is not None:
            records = [
                r for r in records
                if r.motoboy_status == CourierStateMachine.WAITING or r.courier_id == courier_id
            ]
        return [DispatchService.serialize(r) for r in records]

    @staticmethod
    def for_store(store_id: str, limit: int = 100) -> List[Dict]:
        records = (
            DispatchRecord.query
            .filter(DispatchRecord.store_id == store_id)
            .order_by(DispatchRecord.created_at.desc(), DispatchRecord.id.desc())
            .limit(limit)
            .all()
        )
        return [DispatchService.serialize(r, include_credits=True) for r in records]

    @staticmethod
    def status_report(now: Optional[datetime] = None,
                      auto_approve_seconds: int = ORDER_AUTO_APPROVE_SECONDS,
                      recent_limit: int = 10) -> Dict:
        """
        Snapshot used to check the scheduler is keeping up.

        Returns:
            dict: overdue pending orders, approved delivery orders and the
                most recent dispatch records
        """
        now = now or utcnow()

        overdue = (
            Order.query
            .filter(
                Order.status == Order.STATUS_PENDING,
                Order.created_at <= cutoff(now, auto_approve_seconds),
            )
            .order_by(Order.created_at.asc())
            .all()
        )
        approved_delivery = (
            Order.query
            .filter(
                Order.status == Order.STATUS_APPROVED,
                Order.delivery_type == Order.DELIVERY_DELIVERY,
            )
            .count()
        )
        recent = (
            DispatchRecord.query
            .order_by(DispatchRecord.created_at.desc(), DispatchRecord.id.desc())
            .limit(recent_limit)
            .all()
        )
        counts = {}
        for status in CourierStateMachine.ACTIVE_STATES | CourierStateMachine.TERMINAL_STATES:
            counts[status] = DispatchRecord.query.filter(DispatchRecord.motoboy_status == status).count()

        return {
            'now': now.isoformat(),
            'overdue_pending_orders': [
                {
                    'id': o.id,
                    'store_id': o.store_id,
                    'created_at': o.created_at.isoformat(),
                    'age_seconds': int((now - o.created_at).total_seconds()),
                }
                for o in overdue
            ],
            'approved_delivery_orders': approved_delivery,
            'dispatch_status_counts': counts,
            'uncredited_deliveries': DispatchRecord.query.filter(
                DispatchRecord.motoboy_status == CourierStateMachine.DELIVERED,
                DispatchRecord.credited_at.is_(None),
            ).count(),
            'recent_dispatch_records': [DispatchService.serialize(r) for r in recent],
        }
