"""
Status-guarded single-writer-wins updates.

Every lifecycle transition is an UPDATE whose WHERE clause repeats the
status the caller observed. Two actors racing on the same row both issue
the UPDATE; the database lets exactly one of them match, the other sees
rowcount 0 and treats the call as a no-op.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import OperationalError, DBAPIError

from rlv_store import db
from rlv_store.buisness.core.errors import DependencyUnavailable
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.core.guarded_update")


def transition_if(model, row_id: Any, expected: dict[str, Any], values: dict[str, Any]) -> bool:
    """
    Apply `values` to one row only if every column in `expected` still holds
    the expected value.

    Args:
        model: Mapped class (Order, DispatchRecord, ...)
        row_id: Primary key of the row
        expected: Column name -> required current value (None means IS NULL)
        values: Column name -> new value

    Returns:
        bool: True when exactly one row changed

    Raises:
        DependencyUnavailable: The database could not be reached
    """
    stmt = update(model).where(model.id == row_id)
    for column_name, value in expected.items():
        column = getattr(model, column_name)
        stmt = stmt.where(column.is_(None) if value is None else column == value)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)

    with persistence_guard():
        result = db.session.execute(stmt)

    changed = result.rowcount == 1
    logger.debug(
        f"transition_if {model.__name__}#{row_id} expected={expected} -> {'applied' if changed else 'no-op'}"
    )
    return changed


def reload(model, row_id: Any):
    """Fetch a fresh copy of the row, discarding whatever the session cached."""
    with persistence_guard():
        return db.session.get(model, row_id, populate_existing=True)


@contextmanager
def persistence_guard():
    """Translate connectivity failures into DependencyUnavailable."""
    try:
        yield
    except OperationalError as e:
        db.session.rollback()
        logger.error(f"Database unavailable: {e}")
        raise DependencyUnavailable(str(e.orig) if e.orig is not None else str(e)) from e
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        db.session.rollback()
        logger.error(f"Database connection invalidated: {e}")
        raise DependencyUnavailable(str(e)) from e


@contextmanager
def unit_of_work():
    """Commit on success, roll back on any error."""
    try:
        with persistence_guard():
            yield db.session
            db.session.commit()
    except Exception:
        db.session.rollback()
        raise
