from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, String
from sqlalchemy.orm import relationship

from models import Base
from utils.time_utils import utcnow_sa_default


class Company(Base):
    """Aggregate root for one Companies House register row.

    Nested rows (address, SIC codes, previous names) are owned exclusively by the
    company and keyed by the same `company_number`.
    """

    __tablename__ = "companies"

    company_number = Column(String, primary_key=True)
    company_name = Column(String, nullable=True, index=True)
    company_category = Column(String, nullable=True)
    company_status = Column(String, nullable=True)
    country_of_origin = Column(String, nullable=True)

    # NULL when the source column is empty or unparsable.
    dissolution_date = Column(Date, nullable=True)
    incorporation_date = Column(Date, nullable=True)

    uri = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow_sa_default)

    reg_address = relationship(
        "Address", uselist=False, back_populates="company", cascade="all, delete-orphan"
    )
    sic_code = relationship(
        "SICCode", uselist=False, back_populates="company", cascade="all, delete-orphan"
    )
    previous_names = relationship(
        "PreviousName",
        back_populates="company",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Company {self.company_number} {self.company_name!r}>"
