"""Closing a billing period and billing it to the financial ledger."""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, system_clock
from components.core.exceptions import InvalidTransition, PartialFailure, StoreTimeout
from components.execution import schemas
from components.execution.pricing import final_amount, materials_total
from components.execution.repository import ExecutionRepository
from components.finance.repository import LedgerRepository
from components.finance.schemas import LedgerEntryCreate, TransactionStatus, TransactionType
from components.plan.repository import PlanRepository

logger = logging.getLogger(__name__)

MaterialsOverride = Union[List[schemas.MaterialLine], Decimal, None]


class ClosureWorkflow:
    """
    Closes an open period: Open -> Done, never back.

    The ledger entry is written first and the execution is only marked as
    done once the entry exists. The two writes are not atomic; if the
    second one fails the entry is reported through PartialFailure.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = system_clock,
        ledger: Optional[LedgerRepository] = None,
    ):
        self.session = session
        self.clock = clock
        self.plans = PlanRepository(session)
        self.executions = ExecutionRepository(session, clock)
        self.ledger = ledger or LedgerRepository(session)

    async def close_execution(
        self,
        plan_id: int,
        account_id: Optional[int] = None,
        execution_id: Optional[int] = None,
        labor_override: Optional[Decimal] = None,
        materials_override: MaterialsOverride = None,
        ledger_status: TransactionStatus = TransactionStatus.PAID,
        due_date: Optional[date] = None,
    ) -> schemas.ClosureResult:
        plan = await self.plans.require(plan_id, account_id)

        if execution_id is not None:
            execution = await self.executions.get_execution(plan_id, execution_id)
        else:
            execution = await self.executions.get_or_create_current_period(plan_id)

        kind = schemas.CycleKey.parse(execution.cycle_key).kind
        if kind != schemas.CycleKind.PERIOD:
            raise InvalidTransition(f"Execution {execution.id} is not a billing period")
        if execution.status != schemas.ExecutionStatus.OPEN.value:
            raise InvalidTransition(f"Execution {execution.id} is already {execution.status}")

        details = schemas.parse_details(execution.details)
        if isinstance(materials_override, list):
            details.materials = list(materials_override)
            materials = materials_total(materials_override)
        elif materials_override is not None:
            materials = Decimal(materials_override)
        else:
            materials = materials_total(details.materials)

        labor = labor_override if labor_override is not None else plan.default_labor_cost
        amount = final_amount(labor, materials, plan.materials_markup_pct)
        details.labor = Decimal(labor)
        details.markup_pct = plan.materials_markup_pct

        now = self.clock.now()
        today = now.date()
        entry = await self.ledger.insert(
            plan.account_id,
            LedgerEntryCreate(
                type=TransactionType.INCOME,
                amount=amount,
                transaction_date=today,
                description=f"Maintenance: {plan.title}",
                client_id=plan.client_id,
                status=ledger_status,
                due_date=(due_date or today) if ledger_status == TransactionStatus.PENDING else None,
                paid_at=now if ledger_status == TransactionStatus.PAID else None,
            ),
        )
        execution_id = execution.id
        entry_id = entry.id

        try:
            await self.executions.mark_done(execution, amount, entry_id, details)
        except (SQLAlchemyError, StoreTimeout) as e:
            logger.error(
                f"Ledger entry {entry_id} left orphaned: execution {execution_id} "
                f"of plan {plan_id} could not be closed: {e}"
            )
            await self.session.rollback()
            raise PartialFailure(execution_id, entry_id, e) from e

        logger.info(f"Closed execution {execution_id} of plan {plan_id}: {amount} -> ledger entry {entry_id}")
        return schemas.ClosureResult(execution_id=execution_id, final_amount=amount, ledger_entry_id=entry_id)
