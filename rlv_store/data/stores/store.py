from rlv_store import db
from rlv_store.buisness.core.clock import utcnow
from rlv_store.buisness.core.data_insertion_mixin import DataInsertionMixin


class Store(DataInsertionMixin, db.Model):
    """An in-game store. Identified by a short slug such as "farmacia"."""
    __tablename__ = 'stores'

    id = db.Column(db.String(50), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    balance = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    items = db.relationship('StoreItem', back_populates='store', order_by='StoreItem.name')

    def __repr__(self):
        return f'<Store {self.id}>'


class StoreItem(DataInsertionMixin, db.Model):
    __tablename__ = 'store_items'

    id = db.Column(db.String(80), primary_key=True)
    store_id = db.Column(db.String(50), db.ForeignKey('stores.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    price = db.Column(db.Float, nullable=False)
    category = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, default=True)

    store = db.relationship('Store', back_populates='items')

    def __repr__(self):
        return f'<StoreItem {self.id} {self.price}>'
