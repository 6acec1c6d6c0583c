"""Pydantic schemas for the financial ledger."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"


class LedgerEntryCreate(BaseModel):
    """Schema for ledger entry creation."""
    type: TransactionType
    amount: Decimal
    transaction_date: date
    description: Optional[str] = None
    category_id: Optional[int] = None
    client_id: Optional[int] = None
    status: TransactionStatus = TransactionStatus.PAID
    due_date: Optional[date] = None
    paid_at: Optional[datetime] = None


class LedgerEntryRef(BaseModel):
    """Schema for a reference to a ledger entry."""
    id: int
    type: TransactionType
    amount: Decimal
    transaction_date: date
    status: TransactionStatus
    description: Optional[str] = None

    class Config:
        from_attributes = True
