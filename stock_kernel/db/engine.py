"""
Module: stock_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the engine.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py.  MUST NOT import from services/, selectors/, or outer
    layers (create_tables imports models to register their tables).

Invariants enforced:
    - One transaction per operation: session_scope() commits on success and
      rolls back on any exception, so no partial write batch is ever
      observable.
    - PostgreSQL sessions run at READ COMMITTED.  Guarded UPDATE/DELETE
      statements (status + version in the WHERE clause) re-check their
      predicate after waiting on a row lock, which is what the lot store's
      optimistic checks rely on.
    - SQLite connections get a busy timeout so that concurrent writers wait
      for each other instead of failing on first contact.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
    - StoreContentionError when the database reports lock contention,
      deadlock, serialization failure or a concurrent unique-key insert.
    - StoreUnavailableError for every other database failure.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from stock_kernel.exceptions import StoreContentionError, StoreUnavailableError
from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

# Substrings / SQLSTATEs that identify contention rather than an outage.
_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "lock timeout",
    "could not obtain lock",
)
_CONTENTION_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_timeout: float = 5.0,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    SQLite URLs (``sqlite:///stock.db``) get a shared-thread connection with
    a busy timeout of ``sqlite_timeout`` seconds; the pool arguments apply
    only to PostgreSQL, which also runs every session at READ COMMITTED.
    Calling this again replaces the previous engine without disposing it;
    call reset_engine() first when that matters.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        _engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": sqlite_timeout},
        )
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def _require_initialized() -> tuple[Engine, sessionmaker[Session]]:
    if _engine is None or _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine, _SessionFactory


def get_engine() -> Engine:
    return _require_initialized()[0]


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open their own sessions, one per thread."""
    return _require_initialized()[1]


def get_session() -> Session:
    return get_session_factory()()


def is_contention(exc: SQLAlchemyError) -> bool:
    """True if a database error means "another transaction got there first"."""
    if isinstance(exc, IntegrityError):
        return True
    if isinstance(exc, DBAPIError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _CONTENTION_SQLSTATES:
            return True
    message = str(exc).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


def translate_db_error(exc: SQLAlchemyError) -> StoreContentionError | StoreUnavailableError:
    """Map a SQLAlchemy error onto the kernel's concurrency/storage taxonomy."""
    detail = str(getattr(exc, "orig", None) or exc).splitlines()[0]
    if is_contention(exc):
        return StoreContentionError(detail)
    return StoreUnavailableError(detail)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Preconditions: a session factory is given or the engine is initialized.
    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  Database errors
        are re-raised as StoreContentionError / StoreUnavailableError;
        kernel errors are re-raised unchanged.

    Usage:
        with session_scope() as session:
            committer.commit_load(...)
            # Commits on successful exit, rolls back on exception
    """
    session = session_factory() if session_factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except SQLAlchemyError as exc:
        session.rollback()
        translated = translate_db_error(exc)
        logger.warning(
            "transaction_rolled_back",
            extra={"error_code": translated.code},
            exc_info=True,
        )
        raise translated from exc
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the lot, load, stock_totals and load_reports tables and arm the report guards."""
    from stock_kernel.db.base import Base
    from stock_kernel.db.immutability import register_immutability_listeners
    import stock_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(get_engine())
    register_immutability_listeners()


def drop_tables() -> None:
    """Drop every stock table.  Tests only."""
    from stock_kernel.db.base import Base
    import stock_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
