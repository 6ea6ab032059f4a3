from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.sql import func

from tripledger.db.session import Base


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Details
    type = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    vendor = Column(String, nullable=False, index=True)
    location = Column(String, nullable=False)
    cost = Column(Numeric(10, 2), nullable=False)
    comments = Column(Text, nullable=True)

    # Trip link (by name, scoped to the owner)
    trip_name = Column(String, nullable=False, index=True)

    # Proof (Receipts): public path of the stored file
    receipt_path = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
