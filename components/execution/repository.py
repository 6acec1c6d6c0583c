"""Repository for plan execution operations."""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, system_clock
from components.core.database import bounded
from components.core.exceptions import ExecutionNotFound, InvalidTransition, NotFound
from components.execution import schemas
from components.execution.models import PlanExecution
from components.execution.pricing import final_amount_for, round_money
from components.plan.models import MaintenancePlan

logger = logging.getLogger(__name__)

ADHOC_KEY_ATTEMPTS = 10
ADHOC_KEY_STEP = timedelta(microseconds=1)


class ExecutionRepository:
    """
    Ledger of plan executions.

    Every plan has at most one template row holding its defaults, one
    period row per billing month and any number of ad-hoc rows. All
    mutations are written straight to the store; callers re-read when
    they need fresh state.
    """

    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        """Initialize repository with database session."""
        self.session = session
        self.clock = clock

    async def _get_plan(self, plan_id: int) -> MaintenancePlan:
        plan = await bounded(self.session.get(MaintenancePlan, plan_id), "plan lookup")
        if plan is None:
            raise NotFound("Plan", plan_id)
        return plan

    async def _get_by_cycle(self, plan_id: int, key: schemas.CycleKey) -> Optional[PlanExecution]:
        result = await bounded(
            self.session.execute(
                select(PlanExecution).where(
                    PlanExecution.plan_id == plan_id,
                    PlanExecution.cycle_key == str(key),
                )
            ),
            "execution lookup",
        )
        return result.scalar_one_or_none()

    async def _insert_or_fetch(
        self,
        plan_id: int,
        key: schemas.CycleKey,
        details: schemas.ExecutionDetails,
    ) -> PlanExecution:
        """
        Insert an open execution for a cycle key.

        A concurrent writer may have inserted the same key since our lookup;
        the unique constraint rejects the second insert and the winner's row
        is returned instead.
        """
        execution = PlanExecution(
            plan_id=plan_id,
            cycle_key=str(key),
            status=schemas.ExecutionStatus.OPEN.value,
            details=schemas.dump_details(details),
            created_at=self.clock.now(),
        )
        self.session.add(execution)
        try:
            await bounded(self.session.commit(), "execution insert")
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Execution {key} for plan {plan_id} was created concurrently, re-fetching")
            existing = await self._get_by_cycle(plan_id, key)
            if existing is None:
                raise
            return existing
        await self.session.refresh(execution)
        logger.info(f"Created execution {execution.id} ({key}) for plan {plan_id}")
        return execution

    async def _save_details(self, execution: PlanExecution, details: schemas.ExecutionDetails) -> PlanExecution:
        execution.details = schemas.dump_details(details)
        execution.updated_at = self.clock.now()
        await bounded(self.session.commit(), "execution update")
        await self.session.refresh(execution)
        return execution

    async def get_template(self, plan_id: int) -> Optional[PlanExecution]:
        """Get the template row, None when no defaults were configured."""
        return await self._get_by_cycle(plan_id, schemas.CycleKey.template())

    async def get_or_create_template(self, plan_id: int) -> PlanExecution:
        """Get the template row of a plan, creating it with empty defaults."""
        await self._get_plan(plan_id)
        key = schemas.CycleKey.template()
        template = await self._get_by_cycle(plan_id, key)
        if template is not None:
            return template
        return await self._insert_or_fetch(plan_id, key, schemas.ExecutionDetails())

    async def get_or_create_period(self, plan_id: int, year: int, month: int) -> PlanExecution:
        """Get the billing period row of a month, creating an open one seeded from the plan."""
        plan = await self._get_plan(plan_id)
        key = schemas.CycleKey.period(year, month)
        period = await self._get_by_cycle(plan_id, key)
        if period is not None:
            return period
        details = schemas.ExecutionDetails(
            labor=plan.default_labor_cost,
            markup_pct=plan.materials_markup_pct,
        )
        return await self._insert_or_fetch(plan_id, key, details)

    async def get_or_create_current_period(self, plan_id: int) -> PlanExecution:
        now = self.clock.now()
        return await self.get_or_create_period(plan_id, now.year, now.month)

    async def get_execution(self, plan_id: int, execution_id: int) -> PlanExecution:
        """Get an execution of a plan by ID."""
        result = await bounded(
            self.session.execute(
                select(PlanExecution).where(
                    PlanExecution.id == execution_id,
                    PlanExecution.plan_id == plan_id,
                )
            ),
            "execution lookup",
        )
        execution = result.scalar_one_or_none()
        if execution is None:
            raise ExecutionNotFound(execution_id)
        return execution

    async def record_adhoc(
        self,
        plan_id: int,
        details: schemas.ExecutionDetails,
        final_amount: Optional[Decimal] = None,
    ) -> PlanExecution:
        """
        Record an out-of-cycle service as a new done execution.

        When no amount is supplied it is computed from the labor, materials
        and markup in the details. Ad-hoc keys are timestamps; a key already
        taken for the plan moves the timestamp forward by a microsecond.
        """
        await self._get_plan(plan_id)
        amount = round_money(final_amount) if final_amount is not None else final_amount_for(details)
        moment = self.clock.now()

        conflicts = 0
        while True:
            key = schemas.CycleKey.adhoc(moment)
            if await self._get_by_cycle(plan_id, key) is not None:
                moment += ADHOC_KEY_STEP
                continue

            execution = PlanExecution(
                plan_id=plan_id,
                cycle_key=str(key),
                status=schemas.ExecutionStatus.DONE.value,
                final_amount=amount,
                details=schemas.dump_details(details),
                created_at=moment,
            )
            self.session.add(execution)
            try:
                await bounded(self.session.commit(), "execution insert")
            except IntegrityError:
                await self.session.rollback()
                conflicts += 1
                if conflicts >= ADHOC_KEY_ATTEMPTS:
                    raise
                logger.warning(f"Ad-hoc key {key} for plan {plan_id} was taken concurrently, retrying")
                moment += ADHOC_KEY_STEP
                continue

            await self.session.refresh(execution)
            logger.info(f"Recorded ad-hoc execution {execution.id} for plan {plan_id}: {amount}")
            return execution

    async def append_seasonal_event(
        self,
        plan_id: int,
        kind: schemas.SeasonalKind,
        entry: Union[Dict[str, Any], BaseModel],
    ) -> PlanExecution:
        """Append a fertilization or pest entry to the current month's period."""
        entry_type = schemas.SEASONAL_ENTRY_TYPES.get(kind)
        if entry_type is None:
            raise ValueError(f"Seasonal events cannot be recorded for {kind.value}")
        if isinstance(entry, BaseModel):
            entry = entry.model_dump()
        event = entry_type.model_validate(entry)
        if event.date is None:
            event.date = self.clock.today()

        period = await self.get_or_create_current_period(plan_id)
        details = schemas.parse_details(period.details)
        getattr(details, kind.value).append(event)
        return await self._save_details(period, details)

    async def list_executions(self, plan_id: int, exclude_template: bool = True) -> List[PlanExecution]:
        """Get executions of a plan, newest first."""
        query = select(PlanExecution).where(PlanExecution.plan_id == plan_id)
        if exclude_template:
            query = query.where(PlanExecution.cycle_key != str(schemas.CycleKey.template()))
        query = query.order_by(PlanExecution.created_at.desc(), PlanExecution.id.desc())
        result = await bounded(self.session.execute(query), "execution list")
        return list(result.scalars().all())

    async def save_template_defaults(
        self,
        plan_id: int,
        checklist: List[schemas.ChecklistEntry],
        schedule: schemas.SeasonalSchedule,
    ) -> PlanExecution:
        """Store the default checklist and seasonal schedule of a plan."""
        template = await self.get_or_create_template(plan_id)
        details = schemas.parse_details(template.details)
        details.checklist = list(checklist)
        details.schedule = schedule
        return await self._save_details(template, details)

    async def mark_done(
        self,
        execution: PlanExecution,
        final_amount: Decimal,
        ledger_entry_id: int,
        details: Optional[schemas.ExecutionDetails] = None,
    ) -> PlanExecution:
        """Close an execution with its billed amount."""
        if details is not None:
            execution.details = schemas.dump_details(details)
        execution.status = schemas.ExecutionStatus.DONE.value
        execution.final_amount = final_amount
        execution.linked_ledger_entry_id = ledger_entry_id
        execution.updated_at = self.clock.now()
        await bounded(self.session.commit(), "execution update")
        await self.session.refresh(execution)
        return execution

    async def skip_period(self, plan_id: int, execution_id: Optional[int] = None) -> PlanExecution:
        """Mark an open billing period as skipped."""
        if execution_id is not None:
            execution = await self.get_execution(plan_id, execution_id)
        else:
            now = self.clock.now()
            execution = await self._get_by_cycle(plan_id, schemas.CycleKey.period(now.year, now.month))
            if execution is None:
                raise ExecutionNotFound()

        if schemas.CycleKey.parse(execution.cycle_key).kind != schemas.CycleKind.PERIOD:
            raise InvalidTransition(f"Execution {execution.id} is not a billing period")
        if execution.status != schemas.ExecutionStatus.OPEN.value:
            raise InvalidTransition(f"Execution {execution.id} is already {execution.status}")

        execution.status = schemas.ExecutionStatus.SKIPPED.value
        execution.updated_at = self.clock.now()
        await bounded(self.session.commit(), "execution update")
        await self.session.refresh(execution)
        logger.info(f"Skipped execution {execution.id} of plan {plan_id}")
        return execution

    async def _link_period(
        self,
        plan_id: int,
        column: str,
        linked_id: int,
        year: Optional[int],
        month: Optional[int],
    ) -> Tuple[PlanExecution, bool]:
        now = self.clock.now()
        period = await self.get_or_create_period(plan_id, year or now.year, month or now.month)
        if getattr(period, column) is not None:
            return period, True
        setattr(period, column, linked_id)
        period.updated_at = now
        await bounded(self.session.commit(), "execution update")
        await self.session.refresh(period)
        logger.info(f"Linked {column} {linked_id} to execution {period.id} of plan {plan_id}")
        return period, False

    async def link_appointment(
        self,
        plan_id: int,
        appointment_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Tuple[PlanExecution, bool]:
        """
        Attach an appointment to a month's period.

        Returns the period and whether it already had an appointment, in
        which case the existing link is kept.
        """
        return await self._link_period(plan_id, "linked_appointment_id", appointment_id, year, month)

    async def link_task(
        self,
        plan_id: int,
        task_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Tuple[PlanExecution, bool]:
        """Attach the monthly task to a month's period, keeping an existing link."""
        return await self._link_period(plan_id, "linked_task_id", task_id, year, month)
