"""
Best-effort reconciliation of stock purchases with ledger expenses.

There is no stored link between an inventory "in" movement and the expense
paid for it. The match is recomputed on every read by comparing the date
and the total amount, which means:

* editing either record afterwards breaks the match (false negative);
* two unrelated paid expenses with the same date and amount are
  indistinguishable, the first one returned by the store wins (false
  positive).

Nothing here writes; do not build other logic on top of the match.
"""

import logging
from typing import Optional

from components.execution.pricing import round_money
from components.finance.repository import LedgerRepository
from components.finance.schemas import LedgerEntryRef, TransactionStatus, TransactionType
from components.inventory.models import StockMovement
from components.inventory.schemas import MovementType

logger = logging.getLogger(__name__)


class StockExpenseReconciler:

    def __init__(self, ledger: LedgerRepository):
        self.ledger = ledger

    async def find_linked_expense(self, movement: StockMovement) -> Optional[LedgerEntryRef]:
        """Paid expense on the movement date for quantity * unit cost, if any."""
        if movement.type != MovementType.IN.value or movement.unit_cost is None:
            return None

        total = round_money(movement.quantity * movement.unit_cost)
        matches = await self.ledger.find(
            movement.account_id,
            TransactionType.EXPENSE,
            TransactionStatus.PAID,
            movement.movement_date,
            total,
        )
        if not matches:
            logger.debug(f"No expense matches movement {movement.id} ({movement.movement_date}, {total})")
            return None
        return LedgerEntryRef.model_validate(matches[0])
