#!/usr/bin/env python3
"""
Build orchestrator for the store/order/delivery backend
Creates the schema, inserts critical data and, optionally, debug data
"""

import json
import os
import secrets
from pathlib import Path

from rlv_store import create_app, db
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.build")

CRITICAL_DATA_FILE = Path(__file__).parent / 'data' / 'core' / 'build_data_critical.json'


def build_models():
    """Create every table registered on the metadata"""
    logger.info("Creating database tables")
    db.create_all()


def load_critical_data(path=CRITICAL_DATA_FILE):
    if not path.exists():
        error_msg = f"Critical data file not found: {path}"
        logger.error(error_msg)
        raise FileNotFoundError(error_msg)
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def verify_critical_data(critical_data):
    """
    Verify that critical data is present in the database

    Returns:
        bool: True if the admin user and every critical store exist
    """
    from rlv_store.data.core.user_info.user import User
    from rlv_store.data.stores.store import Store

    for user_data in critical_data.get('Essential', {}).get('Users', {}).values():
        if not User.query.filter_by(username=user_data['username']).first():
            logger.warning(f"Essential user {user_data['username']} not found")
            return False

    for store_data in critical_data.get('Core', {}).get('Stores', {}).values():
        if db.session.get(Store, store_data['id']) is None:
            logger.warning(f"Store {store_data['id']} not found")
            return False

    logger.info("Critical data verification passed")
    return True


def insert_critical_data():
    """
    Insert data that must always be present: the admin account and the stores.

    The admin password comes from ADMIN_PASSWORD; without it the account
    gets a random password nobody knows and must be reset before use.
    """
    from rlv_store.data.core.user_info.user import User
    from rlv_store.data.stores.store import Store

    critical_data = load_critical_data()
    if verify_critical_data(critical_data):
        logger.info("Critical data already present, skipping insertion")
        return

    logger.warning("Critical data missing, attempting insertion...")
    try:
        for user_key, user_data in critical_data.get('Essential', {}).get('Users', {}).items():
            user_data = dict(user_data)
            password = os.environ.get('ADMIN_PASSWORD') if user_data.get('role') == 'admin' else None
            if not password:
                password = secrets.token_urlsafe(16)
                logger.warning(f"No password configured for essential user {user_data['username']}; random password set")
            user_data['password'] = password
            User.find_or_create_from_dict(user_data, lookup_fields=['username'], commit=False)
            logger.info(f"Inserted essential user: {user_data['username']}")

        for store_key, store_data in critical_data.get('Core', {}).get('Stores', {}).items():
            Store.find_or_create_from_dict(store_data, lookup_fields=['id'], commit=False)
            logger.info(f"Inserted store: {store_data['id']}")

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        error_msg = f"Critical data insertion failed: {e}"
        logger.error(error_msg)
        raise RuntimeError(error_msg) from e

    if not verify_critical_data(critical_data):
        error_msg = "Critical data insertion completed but verification failed"
        logger.error(error_msg)
        raise RuntimeError(error_msg)


def build_database(enable_debug_data=True, app=None):
    """
    Main build entry point

    Args:
        enable_debug_data (bool): Insert the debug catalog and accounts
        app (Flask, optional): Existing application, created when omitted
    """
    app = app or create_app()

    with app.app_context():
        logger.info(f"Starting database build (debug data: {enable_debug_data})")
        build_models()
        insert_critical_data()

        if enable_debug_data:
            from rlv_store.debug.debug_data_manager import insert_debug_data
            logger.info("Inserting debug data...")
            insert_debug_data()

        logger.info("Database build completed successfully")
