from rlv_store import db
from rlv_store.buisness.core.clock import utcnow
from rlv_store.data.core.user_created_base import UserCreatedBase


class OrderEvent(UserCreatedBase):
    """
    Timeline entry for an order and its dispatch record.

    Descriptions are composed by the narrators; is_human_made separates
    manager/courier/buyer actions from scheduler actions.
    """
    __tablename__ = 'order_events'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    dispatch_record_id = db.Column(db.Integer, db.ForeignKey('dispatch_records.id', ondelete='SET NULL'), nullable=True)
    actor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    event_type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=False)
    is_human_made = db.Column(db.Boolean, default=False)
    timestamp = db.Column(db.DateTime, default=utcnow)

    actor = db.relationship('User', foreign_keys=[actor_id])

    def __repr__(self):
        return f'<OrderEvent {self.event_type}: {self.description}>'

    @classmethod
    def record(cls, order_id, event_type, description, actor_id=None,
               dispatch_record_id=None, is_human_made=False, timestamp=None):
        """
        Add a timeline entry to the current session

        Args:
            order_id (int): Order the event belongs to
            event_type (str): Short machine name, e.g. "OrderApproved"
            description (str): Narrated, human readable text
            actor_id (int, optional): User who caused the event
            dispatch_record_id (int, optional): Related dispatch record
            is_human_made (bool): False for scheduler-driven events
            timestamp (datetime, optional): Event time, defaults to now

        Returns:
            OrderEvent: The flushed event
        """
        event = cls(
            order_id=order_id,
            dispatch_record_id=dispatch_record_id,
            actor_id=actor_id,
            created_by_id=actor_id,
            event_type=event_type,
            description=description,
            is_human_made=is_human_made,
            timestamp=timestamp or utcnow(),
        )
        db.session.add(event)
        db.session.flush()
        return event
