from rlv_store import db
from rlv_store.buisness.core.clock import utcnow
from rlv_store.buisness.core.data_insertion_mixin import DataInsertionMixin


class StoreSale(DataInsertionMixin, db.Model):
    """One row per order line, written when the order is approved."""
    __tablename__ = 'store_sales'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    store_id = db.Column(db.String(50), db.ForeignKey('stores.id'), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    buyer_username = db.Column(db.String(80), nullable=False)
    item_id = db.Column(db.String(80), nullable=False)
    item_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Float, nullable=False)
    sold_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f'<StoreSale order={self.order_id} {self.item_id} x{self.quantity}>'
