"""SQLAlchemy models package.

Important: This project uses a single declarative Base defined in `db.py`.
Import `Base` from this package in all model modules.

Example:

    Base.metadata.create_all(...)

This keeps `Base.metadata` consistent across the app.
"""

from db import Base  # re-export a single shared Base

# Import models so they are registered with SQLAlchemy metadata on startup.
# This makes `Base.metadata.create_all()` create all tables for a fresh DB.
from models.companies import Company  # noqa: F401
from models.addresses import Address  # noqa: F401
from models.sic_codes import SICCode  # noqa: F401
from models.previous_names import PreviousName, ZERO_DATE  # noqa: F401

# Reserved tables (not populated by the ingest pipeline).
from models.accounts import Accounts  # noqa: F401
from models.mortgages import Mortgages  # noqa: F401
from models.returns import Returns  # noqa: F401
from models.limited_partnerships import LimitedPartnerships  # noqa: F401
