from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from models import Base


class Address(Base):
    """Registered office address (1:1 with companies). Always present, possibly blank."""

    __tablename__ = "addresses"

    company_number = Column(
        String,
        ForeignKey("companies.company_number", ondelete="CASCADE"),
        primary_key=True,
    )
    care_of = Column(String, nullable=True)
    po_box = Column(String, nullable=True)
    address_line1 = Column(String, nullable=True)
    address_line2 = Column(String, nullable=True)
    post_town = Column(String, nullable=True)
    county = Column(String, nullable=True)
    country = Column(String, nullable=True)
    post_code = Column(String, nullable=True)

    company = relationship("Company", back_populates="reg_address")
