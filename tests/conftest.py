"""
Shared fixtures.

Store-backed tests run against a throwaway SQLite file (aiosqlite) with
foreign keys enforced, so unique and foreign-key constraints behave the way
the workflow expects from PostgreSQL.
"""

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from academy.core.database import Base
from academy.core.email import NotificationResult
from academy.modules.applications.models import Application  # noqa: F401
from academy.modules.cohorts.models import Cohort, CohortEnrollment  # noqa: F401
from academy.modules.profiles.models import Profile  # noqa: F401
from academy.modules.students.models import ChapterProgress, Student  # noqa: F401


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'academy.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def aborting_transactions(engine):
    """
    Poison a transaction after any failed statement until it is rolled back.

    SQLite lets a transaction continue after an error; PostgreSQL rejects
    every later statement with "current transaction is aborted".
    """
    sync_engine = engine.sync_engine
    dbapi = sync_engine.dialect.loaded_dbapi

    def mark_aborted(context):
        if context.connection is not None:
            context.connection.info["aborted"] = True

    def refuse_if_aborted(cursor, statement, parameters, context):
        if context.root_connection.info.get("aborted"):
            raise dbapi.OperationalError(
                "current transaction is aborted, commands ignored until end of transaction block"
            )

    def clear(conn):
        conn.info.pop("aborted", None)

    def clear_on_checkin(_dbapi_connection, record):
        record.info.pop("aborted", None)

    listeners = [
        (sync_engine, "handle_error", mark_aborted),
        (sync_engine, "do_execute", refuse_if_aborted),
        (sync_engine, "rollback", clear),
        (sync_engine.pool, "checkin", clear_on_checkin),
    ]
    for target, name, fn in listeners:
        event.listen(target, name, fn)

    yield

    for target, name, fn in listeners:
        event.remove(target, name, fn)


@pytest.fixture
def session_factory(engine):
    """Session factory configured like the application's."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    """A database session for one test."""
    async with session_factory() as session:
        yield session


class RecordingNotifier:
    """Notifier double that records every send and returns a fixed result."""

    def __init__(self, result: NotificationResult | None = None):
        self.result = result or NotificationResult(success=True)
        self.sent = []

    async def send(self, kind, recipient_email, context):
        self.sent.append((kind, recipient_email, context))
        return self.result


class ExplodingNotifier:
    """Notifier double that raises, which a real notifier must never do."""

    async def send(self, kind, recipient_email, context):
        raise RuntimeError("notifier crashed")


@pytest.fixture
def notifier():
    """A notifier whose sends always succeed."""
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    """A notifier whose sends always fail."""
    return RecordingNotifier(NotificationResult(success=False, error="SMTP relay unavailable"))


@pytest.fixture
def exploding_notifier():
    return ExplodingNotifier()
