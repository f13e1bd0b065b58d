from rlv_store import db
from rlv_store.buisness.core.clock import utcnow
from rlv_store.buisness.core.data_insertion_mixin import DataInsertionMixin


class InventoryCredit(DataInsertionMixin, db.Model):
    """
    Outcome of crediting one item of a delivered dispatch record.

    Unique per (dispatch record, item) so a retry can never credit the
    same item twice.
    """
    __tablename__ = 'inventory_credits'
    __table_args__ = (
        db.UniqueConstraint('dispatch_record_id', 'item_id', name='uq_inventory_credit_dispatch_item'),
    )

    STATUS_CREDITED = 'credited'
    STATUS_PARTIAL = 'partial'
    STATUS_CAPACITY_EXCEEDED = 'capacity_exceeded'
    # Line could not be read; terminal, never retried
    STATUS_UNUSABLE = 'unusable'

    id = db.Column(db.Integer, primary_key=True)
    dispatch_record_id = db.Column(db.Integer, db.ForeignKey('dispatch_records.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    item_id = db.Column(db.String(80), nullable=False)
    requested = db.Column(db.Integer, nullable=False)
    held_before = db.Column(db.Integer, nullable=False)
    applied = db.Column(db.Integer, nullable=False)
    shortfall = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(30), nullable=False)
    detail = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f'<InventoryCredit dispatch={self.dispatch_record_id} {self.item_id} {self.applied}/{self.requested}>'
