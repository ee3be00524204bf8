from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from models import Base


class SICCode(Base):
    """Up to four SIC classification texts (1:1 with companies)."""

    __tablename__ = "sic_codes"

    company_number = Column(
        String,
        ForeignKey("companies.company_number", ondelete="CASCADE"),
        primary_key=True,
    )
    sic_text_1 = Column(String, nullable=True)
    sic_text_2 = Column(String, nullable=True)
    sic_text_3 = Column(String, nullable=True)
    sic_text_4 = Column(String, nullable=True)

    company = relationship("Company", back_populates="sic_code")
