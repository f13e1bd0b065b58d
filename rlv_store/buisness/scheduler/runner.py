"""
Built-in periodic trigger for the scheduler tick.

Used by `python app.py --scheduler`. Cron or any other external trigger
can call the tick endpoint or `python app.py --tick-once` instead.
"""

import threading

from rlv_store.logger import get_logger

logger = get_logger("rlv_store.scheduler.runner")


def run_periodically(app, interval_seconds, stop_event=None, tick=None, max_ticks=None):
    """
    Run scheduler ticks until stop_event is set.

    Args:
        app: Flask application (ticks run inside its app context)
        interval_seconds (float): Pause between ticks
        stop_event (threading.Event, optional): Set to stop the loop
        tick (callable, optional): Replaces the lifecycle tick, mainly for tests
        max_ticks (int, optional): Stop after this many ticks

    Returns:
        int: Number of ticks run
    """
    from rlv_store.buisness.lifecycle import OrderLifecycle

    stop_event = stop_event or threading.Event()
    ticks = 0

    logger.info(f"Scheduler loop started, interval {interval_seconds}s")
    while not stop_event.is_set():
        with app.app_context():
            try:
                if tick is not None:
                    tick()
                else:
                    OrderLifecycle.from_config(app.config).run_scheduler_tick()
            except Exception as e:
                logger.error(f"Scheduler tick crashed: {e}", exc_info=True)
        ticks += 1
        if max_ticks is not None and ticks >= max_ticks:
            break
        stop_event.wait(interval_seconds)

    logger.info(f"Scheduler loop stopped after {ticks} tick(s)")
    return ticks
