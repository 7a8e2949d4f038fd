"""SQLAlchemy-backed storage handle and unit of work for the sync tables."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from offline_sync.adapters.sqlalchemy.migrations import upgrade_head
from offline_sync.adapters.sqlalchemy.repositories import (
    DEFAULT_PEEK_BATCH_SIZE,
    SqlAlchemyAttentionLog,
    SqlAlchemyEntityStore,
    SqlAlchemyOutboxQueue,
)
from offline_sync.config.storage import get_database_config
from offline_sync.domain.errors import StorageError
from offline_sync.domain.ports.unit_of_work import SyncRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

log = getLogger(__name__)


def _disable_pysqlite_autobegin(dbapi_connection: Any, _connection_record: object) -> None:
    dbapi_connection.isolation_level = None


def _begin_immediate(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN IMMEDIATE")


def enable_sqlite_transactions(engine: Engine) -> None:
    """Make every SQLite transaction start at its first statement, reads included.

    pysqlite only emits BEGIN before the first write, so a read followed by a
    write would otherwise straddle two snapshots. ``BEGIN IMMEDIATE`` takes the
    write lock up front; a concurrent unit of work waits on the busy timeout.
    """

    if engine.dialect.name != "sqlite":
        return
    if not event.contains(engine, "connect", _disable_pysqlite_autobegin):
        event.listen(engine, "connect", _disable_pysqlite_autobegin)
        # Pooled connections opened before the listener still autobegin lazily.
        engine.dispose()
    if not event.contains(engine, "begin", _begin_immediate):
        event.listen(engine, "begin", _begin_immediate)


class StartupError(RuntimeError):
    """Raised when a unit of work is used outside its lifecycle."""


class SqlAlchemyStorage:
    """Owns the engine and session factory for one local database.

    Constructed explicitly and handed to whoever needs a unit of work; there is
    no module-level engine.
    """

    def __init__(self, engine: Engine, *, peek_batch_size: int = DEFAULT_PEEK_BATCH_SIZE) -> None:
        self.engine = engine
        self.peek_batch_size = peek_batch_size
        self._session_factory: sessionmaker[Session] | None = sessionmaker(
            bind=engine, expire_on_commit=False
        )

    @classmethod
    def open(
        cls,
        *,
        engine: Engine | None = None,
        database_uri: str | None = None,
        peek_batch_size: int = DEFAULT_PEEK_BATCH_SIZE,
    ) -> SqlAlchemyStorage:
        """Create (or reuse) an engine and bring the schema to the latest revision."""

        resolved_engine = engine or create_engine(
            database_uri or get_database_config().uri, future=True
        )
        enable_sqlite_transactions(resolved_engine)
        try:
            upgrade_head(engine=resolved_engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not prepare local database: {exc}") from exc
        log.info("Local database ready at %s", resolved_engine.url)
        return cls(resolved_engine, peek_batch_size=peek_batch_size)

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            raise StartupError("Storage has been closed")
        return self._session_factory

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    def unit_of_work(self) -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(
            self.session_factory,
            peek_batch_size=self.peek_batch_size,
        )

    def close(self) -> None:
        """Dispose the engine; later units of work raise ``StartupError``."""

        self._session_factory = None
        self.engine.dispose()


class SqlAlchemyUnitOfWork:
    """One transaction over the entity, outbox and attention tables.

    Any ``SQLAlchemyError`` escaping the block is rolled back and re-raised as
    ``StorageError`` so callers never mistake a failed write for a queued one.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        peek_batch_size: int = DEFAULT_PEEK_BATCH_SIZE,
    ) -> None:
        self.session_factory = session_factory
        self._peek_batch_size = peek_batch_size
        self._session: Session | None = None
        self._repositories: SyncRepositories | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = self.session_factory()
        self._repositories = SyncRepositories(
            entities=SqlAlchemyEntityStore(self._session),
            outbox=SqlAlchemyOutboxQueue(self._session, batch_size=self._peek_batch_size),
            attention=SqlAlchemyAttentionLog(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        if isinstance(exc_value, SQLAlchemyError):
            raise StorageError(f"Local storage operation failed: {exc_value}") from exc_value
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Could not commit local changes: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> SyncRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session


if TYPE_CHECKING:
    from sqlalchemy.orm import sessionmaker as _sessionmaker

    from offline_sync.domain.ports.unit_of_work import SyncUnitOfWork

    _uow_check: SyncUnitOfWork = SqlAlchemyUnitOfWork(_sessionmaker())
