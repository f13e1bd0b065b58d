"""
Catalog Service
Store and item lookups for the storefront.
"""

from typing import Dict, List

from rlv_store import db
from rlv_store.buisness.core.errors import ItemNotFound, StoreNotFound
from rlv_store.data.stores.store import Store, StoreItem


class CatalogService:

    @staticmethod
    def get_store(store_id: str) -> Store:
        store = db.session.get(Store, store_id)
        if store is None or not store.is_active:
            raise StoreNotFound(store_id)
        return store

    @staticmethod
    def get_item(store_id: str, item_id: str) -> StoreItem:
        item = db.session.get(StoreItem, item_id)
        if item is None or item.store_id != store_id or not item.is_active:
            raise ItemNotFound(item_id)
        return item

    @staticmethod
    def list_stores() -> List[Dict]:
        stores = Store.query.filter(Store.is_active.is_(True)).order_by(Store.name).all()
        return [{'id': s.id, 'name': s.name} for s in stores]

    @staticmethod
    def list_items(store_id: str) -> Dict:
        """Active items of a store grouped by category, in name order."""
        store = CatalogService.get_store(store_id)
        items = (
            StoreItem.query
            .filter(StoreItem.store_id == store.id, StoreItem.is_active.is_(True))
            .order_by(StoreItem.category, StoreItem.name)
            .all()
        )
        categories: Dict[str, List[Dict]] = {}
        for item in items:
            categories.setdefault(item.category or 'Other', []).append(
                item.to_dict(exclude=('is_active',))
            )
        return {'store': {'id': store.id, 'name': store.name}, 'categories': categories}
