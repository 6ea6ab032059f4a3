from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tripledger.db.session import Base


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_trips_user_name"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("User", back_populates="trips")

    # Expenses reference trips by name, so only mileage logs hang off the FK
    mileage_logs = relationship("MileageLog", back_populates="trip", cascade="all, delete-orphan")
