from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pytests.common import create_empty_sqlite_db, session_factory_for


@dataclass(frozen=True)
class TempDb:
    engine: Engine
    session_factory: sessionmaker


@pytest.fixture()
def temp_db(tmp_path) -> Generator[TempDb, None, None]:
    """A hermetic, file-backed SQLite DB with every table created."""

    session, engine = create_empty_sqlite_db(tmp_path / "companies.sqlite")
    session.close()
    try:
        yield TempDb(engine=engine, session_factory=session_factory_for(engine))
    finally:
        engine.dispose()


@pytest.fixture()
def app_caplog(caplog):
    """`caplog` wired to the app logger, which does not propagate to root."""

    app_logger = logging.getLogger("companies_ingest")
    app_logger.addHandler(caplog.handler)
    try:
        yield caplog
    finally:
        app_logger.removeHandler(caplog.handler)
