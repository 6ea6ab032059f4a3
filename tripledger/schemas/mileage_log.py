from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field, model_validator

from tripledger.schemas.base import CamelModel

EntryMethod = Literal["manual", "ocr"]


class MileageLogCreate(CamelModel):
    trip_id: Optional[int] = Field(default=None, gt=0)
    trip_date: date
    start_odometer: Decimal = Field(ge=0, decimal_places=1)
    end_odometer: Decimal = Field(ge=0, decimal_places=1)
    purpose: Optional[str] = None
    entry_method: EntryMethod = "manual"
    start_image_url: Optional[str] = None
    end_image_url: Optional[str] = None

    @model_validator(mode="after")
    def check_readings(self):
        if self.end_odometer < self.start_odometer:
            raise ValueError("End odometer reading must not be less than start odometer reading")
        return self


class MileageLogUpdate(CamelModel):
    """Partial update; readings are checked against the stored log in the router."""

    trip_id: Optional[int] = Field(default=None, gt=0)
    trip_date: Optional[date] = None
    start_odometer: Optional[Decimal] = Field(default=None, ge=0, decimal_places=1)
    end_odometer: Optional[Decimal] = Field(default=None, ge=0, decimal_places=1)
    purpose: Optional[str] = None
    entry_method: Optional[EntryMethod] = None
    start_image_url: Optional[str] = None
    end_image_url: Optional[str] = None


class MileageLogOut(CamelModel):
    id: int
    user_id: int
    trip_id: Optional[int] = None
    trip_date: date
    start_odometer: Decimal
    end_odometer: Decimal
    calculated_distance: Decimal
    purpose: Optional[str] = None
    entry_method: str
    start_image_url: Optional[str] = None
    end_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
