#!/usr/bin/env python3
"""
Debug data manager
Loads debug/data/*.json and hands each section to its inserter
"""

import json
from pathlib import Path

from rlv_store.logger import get_logger

logger = get_logger("rlv_store.debug.manager")

DEBUG_DATA_DIR = Path(__file__).parent / 'data'


def load_debug_data(filename='store_debug_data.json'):
    path = DEBUG_DATA_DIR / filename
    if not path.exists():
        logger.warning(f"Debug data file not found: {path}")
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def insert_debug_data(enabled=True):
    """
    Insert all debug data

    Args:
        enabled (bool): Skip everything when False
    """
    if not enabled:
        logger.info("Debug data insertion disabled")
        return

    from rlv_store.debug.add_store_debugging_data import insert_store_debug_data
    insert_store_debug_data(load_debug_data())
