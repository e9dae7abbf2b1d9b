"""
Storage Error Taxonomy

The entity stores only guarantee single-row atomicity. Every write goes through
``commit_or_raise`` which turns a driver-level IntegrityError into one of a
small set of typed storage errors, keeping the underlying SQLSTATE code so
operators can diagnose the root cause.

``resolve_or_create`` is the optimistic read-check-insert step used wherever
two concurrent requests may try to create the same row: the unique constraint
in the database decides the winner, and the loser re-reads and continues with
the winner's record.
"""

import enum
import logging
import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageErrorKind(str, enum.Enum):
    """Kinds of storage failure the workflow distinguishes."""

    UNIQUE_VIOLATION = "unique_violation"
    NOT_NULL_VIOLATION = "not_null_violation"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    OTHER = "other"


# PostgreSQL SQLSTATE codes (class 23 - integrity constraint violation)
SQLSTATE_KINDS: dict[str, StorageErrorKind] = {
    "23505": StorageErrorKind.UNIQUE_VIOLATION,
    "23502": StorageErrorKind.NOT_NULL_VIOLATION,
    "23503": StorageErrorKind.FOREIGN_KEY_VIOLATION,
}

# SQLite reports constraint failures only through the message text
_MESSAGE_KINDS: tuple[tuple[str, StorageErrorKind], ...] = (
    ("unique constraint", StorageErrorKind.UNIQUE_VIOLATION),
    ("duplicate key", StorageErrorKind.UNIQUE_VIOLATION),
    ("not null constraint", StorageErrorKind.NOT_NULL_VIOLATION),
    ("null value in column", StorageErrorKind.NOT_NULL_VIOLATION),
    ("foreign key constraint", StorageErrorKind.FOREIGN_KEY_VIOLATION),
)

_KIND_CODES: dict[StorageErrorKind, str] = {kind: code for code, kind in SQLSTATE_KINDS.items()}

_SQLITE_FIELD = re.compile(r"constraint failed: \w+\.(\w+)")
_PG_KEY_FIELD = re.compile(r"Key \((\w+)")
_PG_COLUMN_FIELD = re.compile(r'column "(\w+)"')


class StorageError(Exception):
    """A failed single-row write, classified by kind."""

    kind: StorageErrorKind = StorageErrorKind.OTHER

    def __init__(
        self,
        message: str,
        *,
        table: str,
        code: str | None = None,
        field: str | None = None,
    ):
        self.message = message
        self.table = table
        self.code = code
        self.field = field
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(table={self.table!r}, field={self.field!r}, "
            f"code={self.code!r})"
        )


class UniqueViolation(StorageError):
    kind = StorageErrorKind.UNIQUE_VIOLATION


class NotNullViolation(StorageError):
    kind = StorageErrorKind.NOT_NULL_VIOLATION


class ForeignKeyViolation(StorageError):
    kind = StorageErrorKind.FOREIGN_KEY_VIOLATION


_KIND_CLASSES: dict[StorageErrorKind, type[StorageError]] = {
    StorageErrorKind.UNIQUE_VIOLATION: UniqueViolation,
    StorageErrorKind.NOT_NULL_VIOLATION: NotNullViolation,
    StorageErrorKind.FOREIGN_KEY_VIOLATION: ForeignKeyViolation,
    StorageErrorKind.OTHER: StorageError,
}


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _extract_field(message: str, kind: StorageErrorKind) -> str | None:
    if kind == StorageErrorKind.UNIQUE_VIOLATION and "_pkey" in message:
        return "id"
    for pattern in (_SQLITE_FIELD, _PG_KEY_FIELD, _PG_COLUMN_FIELD):
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def classify_integrity_error(exc: IntegrityError, table: str) -> StorageError:
    """
    Translate an IntegrityError into a typed StorageError.

    Args:
        exc: The error raised by the driver
        table: Table the failed write targeted

    Returns:
        UniqueViolation, NotNullViolation, ForeignKeyViolation or a plain StorageError
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)
    code = _sqlstate(exc)

    kind = SQLSTATE_KINDS.get(code or "", StorageErrorKind.OTHER)
    if kind == StorageErrorKind.OTHER:
        lowered = message.lower()
        for needle, candidate in _MESSAGE_KINDS:
            if needle in lowered:
                kind = candidate
                break

    error_class = _KIND_CLASSES[kind]
    return error_class(
        message,
        table=table,
        code=code or _KIND_CODES.get(kind),
        field=_extract_field(message, kind),
    )


async def commit_or_raise(db: AsyncSession, table: str) -> None:
    """
    Commit the pending single-row write.

    The session is rolled back on failure so the caller can keep using it.

    Raises:
        StorageError: A classified constraint violation
        SQLAlchemyError: Any other database failure (after rollback)
    """
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise classify_integrity_error(e, table) from e
    except SQLAlchemyError:
        await db.rollback()
        raise


async def resolve_or_create(
    lookup: Callable[[], Awaitable[T | None]],
    create: Callable[[], Awaitable[T]],
    *,
    label: str,
) -> tuple[T, bool]:
    """
    Return the record identified by ``lookup``, creating it if absent.

    When the insert loses a race (unique violation) the record is read again
    and the winner's row is returned instead of surfacing an error.

    Args:
        lookup: Reads the record by its unique key, None when absent
        create: Inserts the record
        label: Name used in log messages

    Returns:
        Tuple of (record, created) where created is False when the record
        already existed or a concurrent request created it first

    Raises:
        UniqueViolation: If the insert conflicted but the re-read found nothing
            (the conflict is on a different key than the lookup)
    """
    existing = await lookup()
    if existing is not None:
        return existing, False

    try:
        return await create(), True
    except UniqueViolation as e:
        logger.warning(
            f"Insert of {label} lost a race on {e.table}.{e.field or '?'} (code={e.code}); "
            "re-reading winner"
        )
        winner = await lookup()
        if winner is None:
            raise
        return winner, False
