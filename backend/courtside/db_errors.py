"""Helpers for working with local storage/SQLAlchemy errors."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

_MISSING_TABLE_SQLSTATES = {"42P01"}


def is_missing_table_error(exc: SQLAlchemyError, table_name: str) -> bool:
    """Return ``True`` if ``exc`` indicates that ``table_name`` is missing."""

    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "sqlstate", None)
    if sqlstate in _MISSING_TABLE_SQLSTATES:
        return True

    message = str(orig).lower()
    if table_name.lower() not in message:
        return False

    return "no such table" in message or "does not exist" in message


def describe_storage_error(exc: BaseException) -> str:
    """Return a short, log-friendly description of a storage failure."""

    orig = getattr(exc, "orig", None)
    if orig is not None:
        return f"{type(orig).__name__}: {orig}"
    if isinstance(exc, StorageClosed):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


class StorageClosed(RuntimeError):
    """Raised when a component uses a storage handle that is not open."""


# Every failure mode of the local store that read paths degrade on and write
# paths wrap in ``StorageFailure``.
STORAGE_ERRORS = (SQLAlchemyError, StorageClosed)
