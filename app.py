#!/usr/bin/env python3
"""
Run script for the store/order/delivery backend

    python app.py                 build the database and serve the API
    python app.py --build-only    create tables and critical data, then exit
    python app.py --tick-once     run one scheduler tick (for cron), then exit
    python app.py --scheduler     run scheduler ticks every SCHEDULER_INTERVAL_SECONDS
"""

import argparse
import os
import signal
import sys
import threading

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from rlv_store import create_app
from rlv_store.build import build_database
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.run")


def parse_arguments():
    parser = argparse.ArgumentParser(description='RLV store order and delivery backend')
    parser.add_argument('--build-only', action='store_true',
                        help='Create tables and critical data only, then exit')
    parser.add_argument('--no-debug-data', action='store_false', dest='enable_debug_data',
                        help='Do not insert the debug catalog and accounts')
    parser.add_argument('--tick-once', action='store_true',
                        help='Run a single scheduler tick and exit')
    parser.add_argument('--scheduler', action='store_true',
                        help='Run the periodic scheduler loop instead of the web server')
    parser.add_argument('--clear-dispatches', action='store_true',
                        help='Delete terminal dispatch records and exit')
    return parser.parse_args()


def run_tick_once(app):
    from rlv_store.buisness.lifecycle import OrderLifecycle

    with app.app_context():
        result = OrderLifecycle.from_config(app.config).run_scheduler_tick()
    logger.info(f"Tick result: {result.to_dict()}")
    return 0 if result.ok else 1


def run_scheduler(app):
    from rlv_store.buisness.scheduler.runner import run_periodically

    stop_event = threading.Event()

    def _stop(signum, frame):
        logger.info(f"Received signal {signum}, stopping scheduler")
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    run_periodically(app, app.config['SCHEDULER_INTERVAL_SECONDS'], stop_event)
    return 0


def clear_dispatches(app):
    from rlv_store.buisness.dispatching.dispatch_manager import DispatchManager
    from rlv_store import db

    with app.app_context():
        cleared = DispatchManager().clear_terminal_records()
        db.session.commit()
    logger.info(f"Cleared {cleared} dispatch records")
    return 0


if __name__ == '__main__':
    args = parse_arguments()
    app = create_app()

    if args.tick_once:
        sys.exit(run_tick_once(app))
    if args.scheduler:
        sys.exit(run_scheduler(app))
    if args.clear_dispatches:
        sys.exit(clear_dispatches(app))

    build_database(enable_debug_data=args.enable_debug_data and not args.build_only, app=app)

    if args.build_only:
        logger.debug("Build completed. Exiting without starting web server.")
        sys.exit(0)

    debug_mode = os.environ.get('FLASK_DEBUG', 'False').lower() in ('true', '1', 'yes', 'on')
    use_reloader = os.environ.get('USE_RELOADER', 'False').lower() in ('true', '1', 'yes', 'on')
    host = os.environ.get('FLASK_HOST', '127.0.0.1')
    port = int(os.environ.get('FLASK_PORT', '5000'))

    if debug_mode:
        logger.warning("DEBUG MODE ENABLED - Do not use in production!")

    logger.info(f"Starting server on {host}:{port} (debug={debug_mode}, reloader={use_reloader})")
    app.run(debug=debug_mode, host=host, port=port, use_reloader=use_reloader)
