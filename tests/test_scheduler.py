"""Unit tests for plan status, next due date and progress summaries."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from components.core.clock import FixedClock
from components.core.exceptions import NotFound
from components.execution import schemas as execution_schemas
from components.execution.models import PlanExecution
from components.execution.repository import ExecutionRepository
from components.plan.models import MaintenancePlan
from components.schedule.schemas import TimelineStatus
from components.schedule.service import (
    PlanScheduler,
    compute_next_due,
    compute_status,
    month_timeline,
    months_before,
    summarize,
)

from conftest import ACCOUNT_ID, NOW


def _execution(cycle_key, status="done", created_at=NOW, **details):
    return PlanExecution(plan_id=1, cycle_key=cycle_key, status=status, details=details, created_at=created_at)


def _checklist(*items):
    return [{"key": key, "label": label, "done": done} for key, label, done in items]


class TestComputeStatus:

    def test_overdue_after_threshold(self):
        executions = [_execution("2025-04", created_at=NOW - timedelta(days=26))]

        report = compute_status(executions, NOW, threshold_days=25)

        assert report.overdue is True
        assert report.days_since_last_done == 26
        assert report.last_done_at == NOW - timedelta(days=26)

    def test_not_overdue_within_threshold(self):
        executions = [_execution("2025-04", created_at=NOW - timedelta(days=24))]
        assert compute_status(executions, NOW, threshold_days=25).overdue is False

    def test_threshold_is_exclusive(self):
        executions = [_execution("2025-04", created_at=NOW - timedelta(days=25))]
        assert compute_status(executions, NOW, threshold_days=25).overdue is False

    def test_no_done_execution_is_overdue(self):
        executions = [
            _execution("template", status="open"),
            _execution("2025-05", status="open"),
            _execution("2025-04", status="skipped"),
        ]

        report = compute_status(executions, NOW, threshold_days=25)

        assert report.overdue is True
        assert report.last_done_at is None
        assert report.days_since_last_done is None

    def test_most_recent_done_wins(self):
        executions = [
            _execution("2025-03", created_at=NOW - timedelta(days=70)),
            _execution(f"adhoc:{(NOW - timedelta(days=3)).isoformat()}", created_at=NOW - timedelta(days=3)),
        ]
        assert compute_status(executions, NOW, threshold_days=25).days_since_last_done == 3

    def test_default_threshold_from_settings(self):
        executions = [_execution("2025-04", created_at=NOW - timedelta(days=26))]
        assert compute_status(executions, NOW).overdue is True


class TestComputeNextDue:

    def _plan(self, weekday=1, week=2):
        return MaintenancePlan(id=1, preferred_weekday=weekday, preferred_week_of_month=week)

    def _template(self, **schedule):
        return _execution("template", status="open", schedule=schedule)

    def test_uses_template_schedule(self):
        template = self._template(fertilization_months=[3, 9])
        assert compute_next_due(self._plan(), template, NOW) == date(2025, 9, 8)

    def test_wraps_to_next_year(self):
        template = self._template(pests_months=[1])
        due = compute_next_due(self._plan(), template, NOW, execution_schemas.SeasonalKind.PESTS)
        assert due == date(2026, 1, 12)

    def test_current_month_is_still_due(self):
        template = self._template(weeds_months=[5, 11])
        due = compute_next_due(self._plan(), template, NOW, execution_schemas.SeasonalKind.WEEDS)
        assert due == date(2025, 5, 12)

    def test_falls_back_to_current_month_without_template(self):
        # May 2025: second Monday
        assert compute_next_due(self._plan(), None, NOW) == date(2025, 5, 12)

    def test_falls_back_when_kind_has_no_months(self):
        template = self._template(fertilization_months=[3, 9])
        due = compute_next_due(self._plan(weekday=None, week=None), template, NOW, execution_schemas.SeasonalKind.PESTS)
        assert due == date(2025, 5, 5)


class TestSummarize:

    def test_empty_history(self):
        summary = summarize([], 6, NOW)

        assert summary.window_start == date(2024, 11, 20)
        assert summary.execution_count == 0
        assert summary.fertilization_count == 0
        assert summary.pest_count == 0
        assert summary.checklist == []

    def test_counts_done_work_in_window(self):
        executions = [
            _execution(
                "2025-04",
                created_at=datetime(2025, 4, 10),
                checklist=_checklist(("pruning", "Pruning", True), ("mowing", "Mowing", False)),
                fertilization=[{"product": "NPK"}],
            ),
            _execution(
                "adhoc:2025-05-01T09:00:00",
                created_at=datetime(2025, 5, 1, 9),
                checklist=_checklist(("pruning", "Pruning", True), ("edging", "", False)),
                pests=[{"type": "Aphids"}, {"type": "Snails"}],
            ),
            _execution(
                "2025-03",
                created_at=datetime(2025, 3, 1),
                checklist=_checklist(("pruning", "Pruning", False), ("", "", True)),
            ),
            # Ignored: still open, skipped, or before the window
            _execution("2025-05", status="open", checklist=_checklist(("pruning", "Pruning", True))),
            _execution("2025-02", status="skipped", created_at=datetime(2025, 2, 1)),
            _execution(
                "2024-10",
                created_at=datetime(2024, 10, 1),
                fertilization=[{"product": "Old"}],
                checklist=_checklist(("hedge", "Hedge", True)),
            ),
        ]

        summary = summarize(executions, 6, NOW)
        progress = {item.label: item for item in summary.checklist}

        assert summary.execution_count == 3
        assert summary.fertilization_count == 1
        assert summary.pest_count == 2
        assert set(progress) == {"Pruning", "Mowing", "edging", "Item"}
        assert (progress["Pruning"].done, progress["Pruning"].total, progress["Pruning"].percent) == (2, 3, 67)
        assert progress["Mowing"].percent == 0
        assert progress["Item"].percent == 100

    def test_half_rounds_up(self):
        # 1 of 8 is 12.5%
        executions = [
            _execution(
                f"2025-0{month}",
                created_at=datetime(2025, month, 1),
                checklist=_checklist(("a", "A", month == 1), ("b", "B", month <= 4)),
            )
            for month in range(1, 5)
        ] + [
            _execution(
                f"adhoc:2025-05-0{day}T08:00:00",
                created_at=datetime(2025, 5, day, 8),
                checklist=_checklist(("a", "A", False), ("b", "B", False)),
            )
            for day in range(1, 5)
        ]

        progress = {item.label: item.percent for item in summarize(executions, 6, NOW).checklist}

        assert progress == {"A": 13, "B": 50}


class TestMonthsBefore:

    def test_same_day(self):
        assert months_before(datetime(2025, 5, 20), 6) == date(2024, 11, 20)

    def test_clamped_to_month_length(self):
        assert months_before(datetime(2025, 5, 31), 3) == date(2025, 2, 28)
        assert months_before(datetime(2024, 5, 31), 3) == date(2024, 2, 29)


class TestMonthTimeline:

    def test_status_of_each_trailing_month(self):
        executions = [
            _execution("2025-05", status="open"),
            _execution("2025-04", created_at=datetime(2025, 4, 10)),
            _execution("2025-02", status="skipped", created_at=datetime(2025, 2, 1)),
            _execution("adhoc:2025-03-05T09:00:00", created_at=datetime(2025, 3, 5, 9)),
            _execution("2024-11", created_at=datetime(2024, 11, 3)),
            _execution("template", status="open"),
        ]

        timeline = month_timeline(executions, NOW, 4)

        assert [(m.cycle_key, m.status) for m in timeline] == [
            ("2025-02", TimelineStatus.SKIPPED),
            ("2025-03", TimelineStatus.PENDING),
            ("2025-04", TimelineStatus.DONE),
            ("2025-05", TimelineStatus.PENDING),
        ]
        assert timeline[1].execution_id is None
        assert (timeline[0].year, timeline[0].month) == (2025, 2)

    def test_spans_year_boundary(self):
        timeline = month_timeline([], datetime(2025, 1, 31), 3)

        assert [m.cycle_key for m in timeline] == ["2024-11", "2024-12", "2025-01"]
        assert all(m.status == TimelineStatus.PENDING for m in timeline)


class TestPlanScheduler:

    @pytest.mark.asyncio
    async def test_overview(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, FixedClock(NOW - timedelta(days=10)))
        await repo.save_template_defaults(
            plan.id, [], execution_schemas.SeasonalSchedule(fertilization_months=[3, 9])
        )
        await repo.record_adhoc(
            plan.id,
            execution_schemas.ExecutionDetails(
                checklist=[execution_schemas.ChecklistEntry(key="mowing", label="Mowing", done=True)]
            ),
            Decimal("60"),
        )
        april = await repo.get_or_create_period(plan.id, 2025, 4)
        await repo.skip_period(plan.id, april.id)

        overview = await PlanScheduler(async_session, clock).overview(plan.id, ACCOUNT_ID, window_months=3)

        assert overview.plan_id == plan.id
        assert overview.status.overdue is False
        assert overview.status.days_since_last_done == 10
        assert overview.next_due_kind == execution_schemas.SeasonalKind.FERTILIZATION
        assert overview.next_due == date(2025, 9, 8)
        assert overview.summary.window_months == 3
        assert overview.summary.execution_count == 1
        assert overview.summary.checklist[0].percent == 100
        assert [(m.cycle_key, m.status) for m in overview.timeline] == [
            ("2025-03", TimelineStatus.PENDING),
            ("2025-04", TimelineStatus.SKIPPED),
            ("2025-05", TimelineStatus.PENDING),
        ]
        assert overview.timeline[1].execution_id == april.id

    @pytest.mark.asyncio
    async def test_new_plan_is_overdue(self, async_session, clock, make_plan):
        plan = await make_plan()

        overview = await PlanScheduler(async_session, clock).overview(plan.id, ACCOUNT_ID)

        assert overview.status.overdue is True
        assert overview.next_due == date(2025, 5, 12)
        assert overview.summary.window_months == 6
        assert len(overview.timeline) == 6

    @pytest.mark.asyncio
    async def test_other_account_cannot_read(self, async_session, clock, make_plan):
        plan = await make_plan()
        with pytest.raises(NotFound):
            await PlanScheduler(async_session, clock).overview(plan.id, ACCOUNT_ID + 1)
