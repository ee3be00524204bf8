"""Time helpers.

Keep all timestamps consistent and timezone-aware, and keep register date parsing
in one place.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from support.errors import FieldParseError

# Companies House bulk export dates look like 24/09/2012.
REGISTER_DATE_FORMAT = "%d/%m/%Y"


def utcnow() -> datetime:
    """Return the current time as a timezone-aware datetime in UTC (+00:00)."""

    return datetime.now(timezone.utc)


def utcnow_sa_default() -> datetime:
    """SQLAlchemy-friendly default callable for UTC timestamps."""

    return utcnow()


def parse_register_date(
    text: str | None, *, field: str = "date", fmt: str = REGISTER_DATE_FORMAT
) -> date | None:
    """Parse a register date such as ``"24/09/2012"``.

    Returns None for a missing/blank value.

    Raises:
        FieldParseError: if the value is non-blank but not in `fmt`.
    """

    if text is None:
        return None
    s = text.strip()
    if not s:
        return None
    try:
        return datetime.strptime(s, fmt).date()
    except ValueError as e:
        raise FieldParseError(field, text) from e
