from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from tripledger.schemas.base import CamelModel


class ExpenseForm(CamelModel):
    """Fields of the add/edit expense form. Validated on both sides of the wire."""

    date: date
    type: str = Field(min_length=1)
    vendor: str = Field(min_length=1)
    location: str = Field(min_length=1)
    cost: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    trip_name: str = Field(min_length=1)
    comments: Optional[str] = None


class ExpenseOut(CamelModel):
    id: int
    user_id: int
    type: str
    date: date
    vendor: str
    location: str
    cost: Decimal
    comments: Optional[str] = None
    trip_name: str
    receipt_path: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BatchResult(CamelModel):
    filename: str
    status: str
    error: str = ""
    expense_id: Optional[int] = None
