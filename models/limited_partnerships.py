from sqlalchemy import Column, ForeignKey, Integer, String

from models import Base


class LimitedPartnerships(Base):
    """Partner counts for limited partnerships. Reserved; not populated yet."""

    __tablename__ = "limited_partnerships"

    company_number = Column(
        String,
        ForeignKey("companies.company_number", ondelete="CASCADE"),
        primary_key=True,
    )
    num_gen_partners = Column(Integer, nullable=True)
    num_lim_partners = Column(Integer, nullable=True)
