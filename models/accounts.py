from sqlalchemy import Column, ForeignKey, Integer, String

from models import Base


class Accounts(Base):
    """Accounts section of the register row.

    Reserved: the table exists but the ingest pipeline does not populate it yet.
    """

    __tablename__ = "accounts"

    company_number = Column(
        String,
        ForeignKey("companies.company_number", ondelete="CASCADE"),
        primary_key=True,
    )
    account_ref_day = Column(Integer, nullable=True)
    account_ref_month = Column(Integer, nullable=True)
    next_due_date = Column(String, nullable=True)
    last_made_up_date = Column(String, nullable=True)
    account_category = Column(String, nullable=True)
