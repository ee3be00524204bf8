from __future__ import annotations

import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from settings import SETTINGS

Base = declarative_base()


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Configure SQLite for one long write transaction shared by many threads."""
    # Let SQLAlchemy own BEGIN/SAVEPOINT instead of the pysqlite driver, otherwise
    # RELEASE of the first savepoint commits the whole run.
    dbapi_connection.isolation_level = None

    cursor = dbapi_connection.cursor()
    try:
        # Wait for locks instead of failing immediately.
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()


def _emit_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def _ensure_sqlite_dir(url: str) -> None:
    database = make_url(url).database
    if database and database != ":memory:":
        parent = os.path.dirname(os.path.abspath(database))
        os.makedirs(parent, exist_ok=True)


def default_database_url() -> str:
    return str(SETTINGS["DATABASE_URL"])


def make_engine(url: str | None = None, *, echo: bool = False) -> Engine:
    """Create an engine for `url` (defaults to SETTINGS['DATABASE_URL']).

    SQLite engines get `check_same_thread=False` because the pipeline hands one
    session (and its connection) between worker threads under a lock.
    """

    url = url or default_database_url()
    if url.startswith("sqlite"):
        _ensure_sqlite_dir(url)
        eng = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_pre_ping=True,
        )
        event.listen(eng, "connect", _set_sqlite_pragmas)
        event.listen(eng, "begin", _emit_sqlite_begin)
        return eng

    return create_engine(url, echo=echo, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    """Create every table registered on `Base.metadata`."""

    # Importing the package registers all model classes.
    import models  # noqa: F401

    Base.metadata.create_all(engine)
