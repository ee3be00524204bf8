"""Shared helpers for tests.

Intended usage:
- spin up a temporary SQLite database with all tables created
- build register rows / CSV text in the Companies House bulk layout

These utilities keep tests small and consistent.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db import init_schema, make_engine, make_session_factory
from utils.record_mapper import COLUMNS, EXPECTED_COLUMN_COUNT, PREVIOUS_NAME_SLOTS

__all__ = [
    "make_sqlite_engine",
    "create_empty_sqlite_db",
    "make_row",
    "make_rows",
    "rows_to_csv",
    "HEADER",
]

HEADER = [f"col_{i}" for i in range(EXPECTED_COLUMN_COUNT)]


def make_sqlite_engine(db_path: Path | str) -> Engine:
    """Create a SQLite engine suitable for tests (same setup as production)."""

    return make_engine(f"sqlite:///{db_path}")


def create_empty_sqlite_db(db_path: Path) -> tuple[Session, Engine]:
    """Create an empty SQLite DB file and initialize all models.

    Returns (session, engine).
    """

    engine = make_sqlite_engine(db_path)
    init_schema(engine)
    return make_session_factory(engine)(), engine


def session_factory_for(engine: Engine) -> sessionmaker:
    return make_session_factory(engine)


def make_row(
    company_number: str = "00000001",
    *,
    previous_names: Iterable[tuple[str, str]] = (),
    **fields: str,
) -> list[str]:
    """Build one register row with every column present.

    `fields` keys are `utils.record_mapper.COLUMNS` names; `previous_names` fills the
    pair slots in order with (con_date, name) tuples.
    """

    row = [""] * EXPECTED_COLUMN_COUNT
    row[COLUMNS["company_number"]] = company_number
    row[COLUMNS["company_name"]] = fields.pop("company_name", f"COMPANY {company_number} LTD")
    row[COLUMNS["incorporation_date"]] = fields.pop("incorporation_date", "24/09/2012")
    row[COLUMNS["company_status"]] = fields.pop("company_status", "Active")
    for name, value in fields.items():
        row[COLUMNS[name]] = value

    for slot, (con_date, name) in zip(PREVIOUS_NAME_SLOTS, previous_names):
        row[slot.date_col] = con_date
        row[slot.name_col] = name
    return row


def make_rows(n: int, *, start: int = 1) -> list[list[str]]:
    return [make_row(f"{i:08d}") for i in range(start, start + n)]


def rows_to_csv(rows: Iterable[list[str]], *, header: list[str] | None = HEADER) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    if header is not None:
        writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()
