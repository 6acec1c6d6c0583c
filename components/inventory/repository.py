"""Repository for stock movement operations."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.database import bounded
from components.inventory.models import StockMovement


class StockRepository:
    """Repository for stock movement operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, movement_id: int, account_id: Optional[int] = None) -> Optional[StockMovement]:
        """Get movement by ID, optionally scoped to an account."""
        query = select(StockMovement).where(StockMovement.id == movement_id)
        if account_id is not None:
            query = query.where(StockMovement.account_id == account_id)
        result = await bounded(self.session.execute(query), "movement lookup")
        return result.scalar_one_or_none()
