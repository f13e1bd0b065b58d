from rlv_store import db
from rlv_store.data.core.user_created_base import UserCreatedBase


class DispatchRecord(UserCreatedBase):
    """
    Courier-facing record for an approved delivery order.

    At most one per order (unique order_id). manager_processed_at marks
    entry into "waiting" and is the reference point for expiry.
    credited_at is the processed marker of the inventory credit processor.
    """
    __tablename__ = 'dispatch_records'

    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, unique=True)
    store_id = db.Column(db.String(50), db.ForeignKey('stores.id'), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    customer_username = db.Column(db.String(80), nullable=False)
    items = db.Column(db.JSON, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)

    manager_status = db.Column(db.String(20), nullable=False, default='approved')
    motoboy_status = db.Column(db.String(20), nullable=False, default='waiting', index=True)
    courier_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    manager_notes = db.Column(db.Text, nullable=True)

    manager_processed_at = db.Column(db.DateTime, nullable=True)
    motoboy_accepted_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    credited_at = db.Column(db.DateTime, nullable=True)

    order = db.relationship('Order', foreign_keys=[order_id])
    customer = db.relationship('User', foreign_keys=[customer_id])
    courier = db.relationship('User', foreign_keys=[courier_id])

    def __repr__(self):
        return f'<DispatchRecord {self.id} order={self.order_id} {self.manager_status}/{self.motoboy_status}>'
