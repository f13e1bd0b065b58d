#!/usr/bin/env python3
"""
Store Debug Data Insertion
Inserts the debug catalog and one account per role
"""

from rlv_store import db
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.debug.stores")


def insert_store_debug_data(debug_data):
    """
    Insert debug data for stores and users

    Args:
        debug_data (dict): Debug data from JSON file

    Raises:
        Exception: If insertion fails (fail-fast)
    """
    if not debug_data:
        logger.info("No store debug data to insert")
        return

    logger.info("Inserting store debug data...")

    try:
        _insert_store_items(debug_data.get('Stores', {}).get('Items', {}))
        _insert_users(debug_data.get('Users', {}))

        db.session.commit()
        logger.info("Successfully inserted store debug data")

    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to insert store debug data: {e}")
        raise


def _insert_store_items(items_by_store):
    from rlv_store.data.stores.store import Store, StoreItem

    for store_id, items in items_by_store.items():
        if db.session.get(Store, store_id) is None:
            logger.warning(f"Skipping items for unknown store {store_id}")
            continue
        for item_data in items:
            StoreItem.find_or_create_from_dict(
                dict(item_data, store_id=store_id),
                lookup_fields=['id'],
                commit=False,
            )
        logger.info(f"Inserted {len(items)} debug items for {store_id}")


def _insert_users(users):
    from rlv_store.data.core.user_info.user import User

    for user_key, user_data in users.items():
        user, created = User.find_or_create_from_dict(
            user_data,
            lookup_fields=['username'],
            commit=False,
        )
        if created:
            logger.info(f"Inserted debug user: {user.username} ({user.role})")
