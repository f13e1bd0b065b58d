from rlv_store import db
from rlv_store.data.core.user_created_base import UserCreatedBase


class Order(UserCreatedBase):
    """
    Submitted, priced snapshot of a cart.

    items and total_amount are frozen at submit time; only the decision
    columns change afterwards, and only through guarded updates.
    """
    __tablename__ = 'orders'

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'

    DELIVERY_PICKUP = 'pickup'
    DELIVERY_DELIVERY = 'delivery'
    DELIVERY_TYPES = (DELIVERY_PICKUP, DELIVERY_DELIVERY)

    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    store_id = db.Column(db.String(50), db.ForeignKey('stores.id'), nullable=False, index=True)
    # [{"item_id", "name", "unit_price", "quantity"}, ...] in cart order
    items = db.Column(db.JSON, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)
    delivery_type = db.Column(db.String(20), nullable=False, default=DELIVERY_PICKUP)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    decided_at = db.Column(db.DateTime, nullable=True)
    decided_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    auto_approved = db.Column(db.Boolean, nullable=False, default=False)
    manager_notes = db.Column(db.Text, nullable=True)

    buyer = db.relationship('User', foreign_keys=[buyer_id])
    decided_by = db.relationship('User', foreign_keys=[decided_by_id])
    store = db.relationship('Store', foreign_keys=[store_id])

    def __repr__(self):
        return f'<Order {self.id} {self.store_id} {self.status} {self.total_amount}>'
