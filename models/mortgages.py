from sqlalchemy import Column, ForeignKey, Integer, String

from models import Base


class Mortgages(Base):
    """Mortgage charge counts. Reserved; not populated by the ingest pipeline."""

    __tablename__ = "mortgages"

    company_number = Column(
        String,
        ForeignKey("companies.company_number", ondelete="CASCADE"),
        primary_key=True,
    )
    num_mort_charges = Column(Integer, nullable=True)
    num_mort_outstanding = Column(Integer, nullable=True)
    num_mort_part_satisfied = Column(Integer, nullable=True)
    num_mort_satisfied = Column(Integer, nullable=True)
