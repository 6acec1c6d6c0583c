"""Pydantic schemas for stock movements."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel

from components.finance.schemas import LedgerEntryRef


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"


class StockMovement(BaseModel):
    """Schema for stock movement response."""
    id: int
    product_name: str
    type: MovementType
    quantity: Decimal
    unit_cost: Optional[Decimal] = None
    movement_date: date
    description: Optional[str] = None

    class Config:
        from_attributes = True


class LinkedExpense(BaseModel):
    """Schema for the best-effort expense match of a movement."""
    movement_id: int
    expense: Optional[LedgerEntryRef] = None
