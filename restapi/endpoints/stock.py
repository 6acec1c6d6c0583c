"""Stock endpoints for the API."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.exceptions import NotFound
from components.core.init_db import get_db
from components.finance.repository import LedgerRepository
from components.inventory import schemas
from components.inventory.reconciler import StockExpenseReconciler
from components.inventory.repository import StockRepository
from restapi.endpoints.auth import get_current_account

router = APIRouter(
    prefix="/stock",
    tags=["stock"],
    responses={404: {"description": "Not found"}},
)


@router.get("/movements/{movement_id}/linked-expense", response_model=schemas.LinkedExpense)
async def get_linked_expense(
    movement_id: int,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
):
    """
    Get the paid expense that most likely paid for a stock purchase.

    The match is by date and total amount only and is recomputed on every
    call; expense is null when nothing matches.
    """
    movement = await StockRepository(db).get_by_id(movement_id, account_id)
    if movement is None:
        raise NotFound("Stock movement", movement_id)
    reconciler = StockExpenseReconciler(LedgerRepository(db))
    return schemas.LinkedExpense(
        movement_id=movement.id,
        expense=await reconciler.find_linked_expense(movement),
    )
