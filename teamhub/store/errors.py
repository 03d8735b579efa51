"""Failures raised by persistence gateways.

Gateways never leak driver exceptions. Every integrity problem comes out as one
of the classes below so the team service can map it to a domain error without
looking at vendor error codes.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError


class StoreError(Exception):
    """Unclassified store fault."""


class UniqueViolation(StoreError):
    """A unique or primary-key constraint rejected the write."""


class ForeignKeyViolation(StoreError):
    """The write referenced a row that does not exist."""


class RecordNotFound(StoreError):
    """Update or delete targeted a row that does not exist."""


# SQLSTATE codes as reported by PostgreSQL drivers
_UNIQUE_SQLSTATE = "23505"
_FOREIGN_KEY_SQLSTATE = "23503"


def translate_integrity_error(exc: IntegrityError) -> StoreError:
    """Classify a SQLAlchemy IntegrityError (SQLite or PostgreSQL wording)."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    text = str(orig).lower()
    if code == _UNIQUE_SQLSTATE or "unique constraint" in text or "duplicate key" in text:
        return UniqueViolation(str(orig))
    if code == _FOREIGN_KEY_SQLSTATE or "foreign key constraint" in text:
        return ForeignKeyViolation(str(orig))
    return StoreError(str(orig))
