from __future__ import annotations

from datetime import date

from sqlalchemy import Column, Date, ForeignKey, String
from sqlalchemy.orm import relationship

from models import Base

# Stored in place of an unparsable change-of-name date; `con_date` is part of the key.
ZERO_DATE = date(1, 1, 1)


class PreviousName(Base):
    """A former company name, keyed by (company_number, con_date).

    `con_date` is the Companies House "CONDATE" (date the name stopped being used).
    """

    __tablename__ = "previous_names"

    company_number = Column(
        String,
        ForeignKey("companies.company_number", ondelete="CASCADE"),
        primary_key=True,
    )
    con_date = Column(Date, primary_key=True)
    company_name = Column(String, nullable=False)

    company = relationship("Company", back_populates="previous_names")
