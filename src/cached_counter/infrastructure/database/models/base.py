"""Declarative Base for cached counter persistence.

This module defines a project-wide SQLAlchemy Declarative Base with
deterministic naming conventions (stable Alembic diffs in host applications)
and small UTC helpers. Host applications may declare their counter-bearing
models on this Base or on their own; the counter store only needs the mapped
class.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

__all__ = ["Base", "metadata", "utcnow_naive"]

#: Deterministic naming conventions for Alembic-friendly diffs.
#: Ref: https://alembic.sqlalchemy.org/en/latest/naming.html
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTIONS)


class Base(DeclarativeBase):
    """Declarative Base for all ORM models."""

    metadata = metadata


def utcnow_naive() -> datetime:
    """Return current UTC time without tzinfo.

    Job timestamps are stored in TIMESTAMP WITHOUT TIME ZONE columns so the
    same comparisons work on PostgreSQL and SQLite.
    """
    return datetime.now(UTC).replace(tzinfo=None)
