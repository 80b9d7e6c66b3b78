# bvengine/models/base.py
"""
Base model and mixins for all database tables.
"""
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


def _get_current_time():
    """Timezone-aware UTC now, shared by every timestamp column."""
    return datetime.now(timezone.utc)


class ExactDecimal(TypeDecorator):
    """
    Decimal stored as its string form.

    Keeps every digit on every backend, where a fixed-scale DECIMAL
    would truncate very small values.
    """
    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class AuditMixin:
    createdAt = Column(DateTime, default=_get_current_time, index=True)
    updatedAt = Column(DateTime, default=_get_current_time, onupdate=_get_current_time)
