"""
Row <-> dict conversion for the models

Used by the build/seed scripts (JSON seed files) and by the services when
they hand rows to the JSON API.
"""

from datetime import datetime

from sqlalchemy import inspect

from rlv_store import db
from rlv_store.logger import get_logger

logger = get_logger("rlv_store.core.data_insertion")

AUDIT_FIELDS = ('created_at', 'updated_at', 'created_by_id', 'updated_by_id')


class DataInsertionMixin:

    @classmethod
    def from_dict(cls, data_dict, user_id=None, skip_fields=None):
        """
        Build an unsaved instance from a seed/request dict.

        Keys that are not mapped columns are ignored, except "password",
        which goes through set_password() when the model has one.

        Args:
            data_dict (dict): Column values
            user_id (int, optional): Written to created_by_id/updated_by_id when present
            skip_fields (iterable, optional): Column names to ignore
        """
        skip_fields = set(skip_fields or ())
        columns = {c.key for c in inspect(cls).columns}

        values = {
            key: value for key, value in data_dict.items()
            if key in columns and key not in skip_fields
            and not (key in ('created_at', 'updated_at') and value is None)
        }
        instance = cls(**values)

        if 'password' in data_dict and hasattr(instance, 'set_password'):
            instance.set_password(data_dict['password'])

        if user_id is not None:
            if hasattr(instance, 'created_by_id') and not instance.created_by_id:
                instance.created_by_id = user_id
            if hasattr(instance, 'updated_by_id'):
                instance.updated_by_id = user_id

        return instance

    def to_dict(self, include_audit_fields=True, exclude=None):
        """JSON-ready column values; datetimes become ISO strings."""
        exclude = set(exclude or ())
        if not include_audit_fields:
            exclude.update(AUDIT_FIELDS)

        result = {}
        for column in inspect(self.__class__).columns:
            if column.key in exclude:
                continue
            value = getattr(self, column.key)
            result[column.key] = value.isoformat() if isinstance(value, datetime) else value
        return result

    @classmethod
    def create_from_dict(cls, data_dict, user_id=None, skip_fields=None, commit=True):
        """Add a new instance; commits when commit=True, otherwise only flushes."""
        instance = cls.from_dict(data_dict, user_id, skip_fields)
        try:
            db.session.add(instance)
            if commit:
                db.session.commit()
                logger.info(f"Created {cls.__name__}: {instance}")
            else:
                db.session.flush()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating {cls.__name__}: {e}")
            raise
        return instance

    @classmethod
    def find_or_create_from_dict(cls, data_dict, user_id=None, skip_fields=None,
                                 lookup_fields=None, commit=True):
        """
        Return the row matching lookup_fields, creating it when missing.

        Seeding is re-runnable this way: existing rows are left as they are.

        Args:
            lookup_fields (list, optional): Columns to match on; defaults to
                the primary key and unique columns present in data_dict

        Returns:
            tuple: (instance, created)
        """
        if lookup_fields is None:
            lookup_fields = [
                c.key for c in inspect(cls).columns
                if (c.unique or c.primary_key) and c.key in data_dict
            ]

        lookup = {field: data_dict[field] for field in lookup_fields if field in data_dict}
        if lookup:
            existing = db.session.execute(db.select(cls).filter_by(**lookup)).scalar_one_or_none()
            if existing is not None:
                logger.debug(f"Found existing {cls.__name__}: {existing}")
                return existing, False

        return cls.create_from_dict(data_dict, user_id, skip_fields, commit), True
