from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tripledger.db.session import Base

ENTRY_METHODS = ("manual", "ocr")


class MileageLog(Base):
    __tablename__ = "mileage_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=True, index=True)

    trip_date = Column(Date, nullable=False)
    start_odometer = Column(Numeric(10, 1), nullable=False)
    end_odometer = Column(Numeric(10, 1), nullable=False)
    calculated_distance = Column(Numeric(10, 1), nullable=False)
    purpose = Column(Text, nullable=True)
    entry_method = Column(Enum(*ENTRY_METHODS, name="entry_method"), nullable=False, default="manual")

    # Odometer photos (public paths)
    start_image_url = Column(String, nullable=True)
    end_image_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    trip = relationship("Trip", back_populates="mileage_logs")
