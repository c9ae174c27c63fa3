"""
SQLAlchemy custom types for cross-dialect compatibility.

Production runs on Postgres (native UUID and JSONB) while the test suite
runs on SQLite; these helpers keep one set of models valid for both.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import CHAR, TypeDecorator


class GUID(TypeDecorator):
    """
    Platform-independent UUID column.

    - Postgres: native UUID
    - Anything else: CHAR(36) holding the canonical string form
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect):
        if value is None:
            return None
        u = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return u if dialect.name == "postgresql" else str(u)

    def process_result_value(self, value: Any, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# JSONB on Postgres so metadata can be indexed later, plain JSON elsewhere.
JSONType = JSON().with_variant(JSONB(), "postgresql")


def enum_values(enum_cls) -> list[str]:
    """values_callable for SQLAlchemy Enum columns: persist ``.value`` not ``.name``."""
    return [member.value for member in enum_cls]
