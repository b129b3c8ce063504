"""
Module: signing_kernel.db.types
Responsibility: Column types shared by every model.  Centralizes timezone
    handling and enum storage so all tables agree.
Architecture position: Kernel > DB.  May be imported by models/ and db/base.py.
    MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Timestamps round-trip as timezone-aware UTC on every backend.  SQLite
      has no timezone support, so UTCDateTime stores naive UTC and re-attaches
      the zone on load; PostgreSQL gets TIMESTAMP WITH TIME ZONE.
"""

from datetime import timezone
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    Guarantees:
        - process_bind_param rejects naive datetimes (ValueError).
        - process_result_value always returns an aware UTC datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime cannot be stored; attach a timezone")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def text_enum(enum_cls: type[Enum], length: int = 50) -> SAEnum:
    """Store a str-Enum by value as VARCHAR plus a CHECK constraint.

    Loads return the Enum member, so callers never compare against raw
    strings.  No native database ENUM type is created.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        create_constraint=True,
        length=length,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
        name=f"ck_{enum_cls.__name__.lower()}",
    )
