"""Scheduling view of maintenance plans: overdue status, next due date, progress."""

import logging
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, system_clock
from components.core.config import get_settings
from components.execution.models import PlanExecution
from components.execution.repository import ExecutionRepository
from components.execution.schemas import (
    CycleKey,
    CycleKind,
    ExecutionStatus,
    SeasonalKind,
    parse_details,
)
from components.plan.models import MaintenancePlan
from components.plan.repository import PlanRepository
from components.schedule import schemas
from components.schedule.rules import next_due_date, preferred_date_in_month

logger = logging.getLogger(__name__)


def _is_done_work(execution: PlanExecution) -> bool:
    if execution.status != ExecutionStatus.DONE.value:
        return False
    return CycleKey.parse(execution.cycle_key).kind != CycleKind.TEMPLATE


def months_before(moment: datetime, months: int) -> date:
    """Same day of the month, `months` earlier, clamped to the month's length."""
    return (moment - relativedelta(months=months)).date()


def compute_status(
    executions: Iterable[PlanExecution],
    now: datetime,
    threshold_days: Optional[int] = None,
) -> schemas.PlanStatusReport:
    """
    Overdue status of a plan.

    A plan with no done execution at all is overdue.
    """
    if threshold_days is None:
        threshold_days = get_settings().OVERDUE_THRESHOLD_DAYS

    done_dates = [e.created_at for e in executions if _is_done_work(e)]
    if not done_dates:
        return schemas.PlanStatusReport(overdue=True)

    last_done_at = max(done_dates)
    days_since = (now - last_done_at).days
    return schemas.PlanStatusReport(
        last_done_at=last_done_at,
        days_since_last_done=days_since,
        overdue=days_since > threshold_days,
    )


def compute_next_due(
    plan: MaintenancePlan,
    template: Optional[PlanExecution],
    now: datetime,
    kind: SeasonalKind = SeasonalKind.FERTILIZATION,
) -> Optional[date]:
    """
    Next date a service of `kind` is due.

    Uses the seasonal month list of the template when there is one,
    otherwise the preferred date in the current month.
    """
    months = []
    if template is not None:
        schedule = parse_details(template.details).schedule
        if schedule is not None:
            months = schedule.months_for(kind)

    if months:
        return next_due_date(
            months,
            now.year,
            now.month,
            plan.preferred_weekday,
            plan.preferred_week_of_month,
        )
    return preferred_date_in_month(now.year, now.month, plan.preferred_weekday, plan.preferred_week_of_month)


def summarize(executions: Iterable[PlanExecution], window_months: int, now: datetime) -> schemas.ProgressSummary:
    """Aggregate done executions created within the trailing window."""
    window_start = months_before(now, window_months)
    start = datetime.combine(window_start, time.min)
    summary = schemas.ProgressSummary(window_months=window_months, window_start=window_start)

    checklist: Dict[str, list] = {}
    for execution in executions:
        if not _is_done_work(execution) or execution.created_at < start:
            continue
        details = parse_details(execution.details)
        summary.execution_count += 1
        summary.fertilization_count += len(details.fertilization)
        summary.pest_count += len(details.pests)
        for item in details.checklist:
            label = item.label or item.key or "Item"
            counts = checklist.setdefault(label, [0, 0])
            counts[1] += 1
            if item.done:
                counts[0] += 1

    for label, (done, total) in checklist.items():
        percent = (Decimal(done) * 100 / Decimal(total)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        summary.checklist.append(
            schemas.ChecklistProgress(label=label, done=done, total=total, percent=int(percent))
        )
    return summary


def month_timeline(executions: Iterable[PlanExecution], now: datetime, months: int) -> List[schemas.MonthStatus]:
    """
    Status of the billing period of each of the trailing `months` months, oldest first.

    A month without a period, or with one still open, is pending.
    """
    periods = {
        e.cycle_key: e
        for e in executions
        if CycleKey.parse(e.cycle_key).kind == CycleKind.PERIOD
    }
    first_of_month = now.replace(day=1)
    timeline = []
    for offset in range(months - 1, -1, -1):
        moment = first_of_month - relativedelta(months=offset)
        key = str(CycleKey.period(moment.year, moment.month))
        execution = periods.get(key)
        if execution is not None and execution.status == ExecutionStatus.DONE.value:
            status = schemas.TimelineStatus.DONE
        elif execution is not None and execution.status == ExecutionStatus.SKIPPED.value:
            status = schemas.TimelineStatus.SKIPPED
        else:
            status = schemas.TimelineStatus.PENDING
        timeline.append(schemas.MonthStatus(
            cycle_key=key,
            year=moment.year,
            month=moment.month,
            status=status,
            execution_id=execution.id if execution is not None else None,
        ))
    return timeline


class PlanScheduler:
    """Reads a plan with its executions and computes its scheduling view."""

    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self.plans = PlanRepository(session)
        self.executions = ExecutionRepository(session, clock)
        self.clock = clock

    async def overview(
        self,
        plan_id: int,
        account_id: Optional[int] = None,
        kind: SeasonalKind = SeasonalKind.FERTILIZATION,
        window_months: Optional[int] = None,
    ) -> schemas.PlanOverview:
        plan = await self.plans.require(plan_id, account_id)
        template = await self.executions.get_template(plan_id)
        executions = await self.executions.list_executions(plan_id)
        now = self.clock.now()
        if window_months is None:
            window_months = get_settings().SUMMARY_WINDOW_MONTHS

        return schemas.PlanOverview(
            plan_id=plan.id,
            status=compute_status(executions, now),
            next_due_kind=kind,
            next_due=compute_next_due(plan, template, now, kind),
            summary=summarize(executions, window_months, now),
            timeline=month_timeline(executions, now, window_months),
        )
