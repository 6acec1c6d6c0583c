"""Financial ledger models for the database."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from components.core.database import Base


class FinanceCategory(Base):
    """Reference data for grouping ledger entries."""
    __tablename__ = "finance_categories"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False)  # income or expense

    # Relationships
    entries = relationship("LedgerEntry", back_populates="category")


class LedgerEntry(Base):
    """Financial transaction (income or expense)."""
    __tablename__ = "financial_transactions"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, nullable=False, index=True)
    type = Column(String(20), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    transaction_date = Column(Date, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    category_id = Column(Integer, ForeignKey("finance_categories.id"), nullable=True)
    client_id = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="paid")
    due_date = Column(Date, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    category = relationship("FinanceCategory", back_populates="entries")
