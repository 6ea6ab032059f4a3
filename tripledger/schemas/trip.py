from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from tripledger.schemas.base import CamelModel


class TripCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class TripOut(CamelModel):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class TripSummary(CamelModel):
    trip_id: int
    trip_name: str
    total_spent: Decimal
    expense_count: int
