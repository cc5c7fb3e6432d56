"""
Engine and session handling for the School Library backend.

Sessions are short-lived: the API opens one per request (``api.dependencies.get_db``)
and the CLI one per command (``DatabaseManager.session_scope``). Services commit
through ``safe_commit`` so integrity failures reach callers as domain errors
instead of raw SQLAlchemy exceptions.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .errors import DuplicateError, RepositoryException, ValidationError
from .schema import Base

logger = logging.getLogger(__name__)

#: Seconds SQLite waits on a locked database before failing a write
SQLITE_BUSY_TIMEOUT = 30

T = TypeVar("T")


def _sqlite_pragmas(dbapi_connection, connection_record):  # noqa: ARG001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT * 1000}")
    cursor.close()


class DatabaseManager:
    """
    Owns the engine and session factory for one database URL.

    SQLite files get a single shared connection with foreign keys enabled;
    any other backend gets a pre-pinged connection pool.
    """

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or get_config().get_database_url()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
            logger.info("Database engine created: %s", self._engine.url.render_as_string())
        return self._engine

    def _create_engine(self) -> Engine:
        if not self.is_sqlite:
            return create_engine(self.database_url, pool_size=10, max_overflow=20, pool_pre_ping=True)

        database = make_url(self.database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            self.database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _sqlite_pragmas)
        return engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            # Loaded rows stay readable after commit; responses are built from them
            self._session_factory = sessionmaker(
                bind=self.engine, autoflush=False, expire_on_commit=False
            )
        return self._session_factory

    def create_session(self) -> Session:
        """New session; the caller closes it."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Session committed on success and rolled back on error.

        ```python
        with db_manager.session_scope() as session:
            LoanService(session).update_overdue_statuses()
        ```
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """Create missing tables, dropping every table first when asked."""
        if drop_existing:
            logger.warning("Dropping all tables of %s", self.database_url)
            Base.metadata.drop_all(bind=self.engine)
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ready (%d tables)", len(Base.metadata.tables))

    def verify_connection(self) -> bool:
        """Run ``SELECT 1``; used by the health endpoint and the CLI."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database connection check failed")
            return False
        return True

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.debug("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Process-wide database manager.

    Args:
        database_url: Only honoured by the call that creates the manager
    """
    global _db_manager  # noqa: PLW0603

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)
    return _db_manager


def reset_db_manager() -> None:
    """Dispose of and forget the global database manager."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


def safe_commit(session: Session, operation: str) -> None:
    """
    Commit, translating database failures into domain errors.

    Raises:
        DuplicateError: If a unique constraint is violated
        ValidationError: If another integrity constraint is violated
        RepositoryException: On any other database failure
    """
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if "unique" in str(e.orig).lower():
            raise DuplicateError(f"Could not {operation}: duplicate value") from e
        raise ValidationError(f"Could not {operation}: {e.orig!s}") from e
    except Exception as e:
        session.rollback()
        raise RepositoryException(f"Could not {operation}: {e!s}") from e


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """Run ``query_func(session)``; unexpected failures become ``RepositoryException``."""
    try:
        return query_func(session)
    except RepositoryException:
        raise
    except Exception as e:
        logger.exception("%s", error_msg)
        raise RepositoryException(f"{error_msg}: database query failed") from e
