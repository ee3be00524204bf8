from sqlalchemy import Column, ForeignKey, String

from models import Base


class Returns(Base):
    __tablename__ = "returns"

    company_number = Column(
        String,
        ForeignKey("companies.company_number", ondelete="CASCADE"),
        primary_key=True,
    )
    next_due_date = Column(String, nullable=True)
    last_made_up_date = Column(String, nullable=True)
