"""Repository for financial ledger operations."""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.database import bounded
from components.finance import schemas
from components.finance.models import LedgerEntry

logger = logging.getLogger(__name__)


class LedgerRepository:
    """Repository for financial ledger operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def insert(self, account_id: int, entry: schemas.LedgerEntryCreate) -> LedgerEntry:
        """Create a ledger entry and commit it."""
        db_entry = LedgerEntry(
            account_id=account_id,
            type=entry.type.value,
            amount=entry.amount,
            transaction_date=entry.transaction_date,
            description=entry.description,
            category_id=entry.category_id,
            client_id=entry.client_id,
            status=entry.status.value,
            due_date=entry.due_date,
            paid_at=entry.paid_at,
        )
        self.session.add(db_entry)
        await bounded(self.session.commit(), "ledger insert")
        await self.session.refresh(db_entry)
        logger.info(
            f"Ledger entry {db_entry.id} created: {entry.type.value} {entry.amount} "
            f"({entry.status.value}) for account {account_id}"
        )
        return db_entry

    async def get_by_id(self, entry_id: int) -> Optional[LedgerEntry]:
        """Get ledger entry by ID."""
        result = await bounded(
            self.session.execute(select(LedgerEntry).where(LedgerEntry.id == entry_id)),
            "ledger lookup",
        )
        return result.scalar_one_or_none()

    async def find(
        self,
        account_id: int,
        type: schemas.TransactionType,
        status: schemas.TransactionStatus,
        transaction_date: date,
        amount: Decimal,
    ) -> List[LedgerEntry]:
        """Get entries matching type, status, date and amount exactly."""
        result = await bounded(
            self.session.execute(
                select(LedgerEntry).where(
                    LedgerEntry.account_id == account_id,
                    LedgerEntry.type == type.value,
                    LedgerEntry.status == status.value,
                    LedgerEntry.transaction_date == transaction_date,
                    LedgerEntry.amount == amount,
                ).order_by(LedgerEntry.id)
            ),
            "ledger search",
        )
        return list(result.scalars().all())
