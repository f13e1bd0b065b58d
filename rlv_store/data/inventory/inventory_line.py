from rlv_store import db
from rlv_store.buisness.core.clock import utcnow
from rlv_store.buisness.core.data_insertion_mixin import DataInsertionMixin


class InventoryLine(DataInsertionMixin, db.Model):
    """
    A quantity of an item held by a user.

    Several lines may exist per (user, item); the held quantity is their sum.
    """
    __tablename__ = 'inventory_lines'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    item_id = db.Column(db.String(80), nullable=False, index=True)
    item_name = db.Column(db.String(200), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    sent_by_username = db.Column(db.String(80), nullable=True)
    dispatch_record_id = db.Column(db.Integer, db.ForeignKey('dispatch_records.id', ondelete='SET NULL'), nullable=True)
    received_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f'<InventoryLine user={self.user_id} {self.item_id} x{self.quantity}>'
