"""Unit tests for the plan execution ledger."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from components.core.clock import FixedClock
from components.core.exceptions import ExecutionNotFound, InvalidDetails, InvalidTransition, NotFound
from components.execution import schemas
from components.execution.models import PlanExecution
from components.execution.repository import ExecutionRepository

from conftest import NOW


class TestTemplate:

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        first = await repo.get_or_create_template(plan.id)
        second = await repo.get_or_create_template(plan.id)

        assert first.id == second.id
        assert first.cycle_key == "template"
        assert first.status == "open"
        assert first.final_amount is None

    @pytest.mark.asyncio
    async def test_missing_template_is_none(self, async_session, clock, make_plan):
        plan = await make_plan()
        assert await ExecutionRepository(async_session, clock).get_template(plan.id) is None

    @pytest.mark.asyncio
    async def test_unknown_plan(self, async_session, clock):
        with pytest.raises(NotFound):
            await ExecutionRepository(async_session, clock).get_or_create_template(999)

    @pytest.mark.asyncio
    async def test_saved_defaults_are_read_back(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)
        checklist = [
            schemas.ChecklistEntry(key="pruning", label="Pruning"),
            schemas.ChecklistEntry(key="mowing", label="Mowing", done=True, notes="back yard only"),
        ]
        schedule = schemas.SeasonalSchedule(fertilization_months=[9, 3], pests_months=[1, 7], weeds_months=[])

        saved = await repo.save_template_defaults(plan.id, checklist, schedule)
        template = await repo.get_or_create_template(plan.id)
        details = schemas.parse_details(template.details)

        assert template.id == saved.id
        assert details.checklist == checklist
        assert details.schedule.fertilization_months == [3, 9]
        assert details.schedule.pests_months == [1, 7]
        assert details.schedule.weeds_months == []

    @pytest.mark.asyncio
    async def test_saving_defaults_keeps_unknown_fields(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)
        template = await repo.get_or_create_template(plan.id)
        template.details = {"legacy_flag": True, "photos": ["a.jpg"]}
        await async_session.commit()

        await repo.save_template_defaults(plan.id, [], schemas.SeasonalSchedule(weeds_months=[5]))
        template = await repo.get_or_create_template(plan.id)

        assert template.details["legacy_flag"] is True
        assert template.details["photos"] == ["a.jpg"]
        assert template.details["schedule"]["weeds_months"] == [5]


class TestPeriod:

    @pytest.mark.asyncio
    async def test_created_open_and_seeded_from_plan(self, async_session, clock, make_plan):
        plan = await make_plan(default_labor_cost=Decimal("200.00"), materials_markup_pct=Decimal("12.5"))
        repo = ExecutionRepository(async_session, clock)

        period = await repo.get_or_create_period(plan.id, 2025, 5)
        details = schemas.parse_details(period.details)

        assert period.cycle_key == "2025-05"
        assert period.status == "open"
        assert period.final_amount is None
        assert details.labor == Decimal("200.00")
        assert details.markup_pct == Decimal("12.5")
        assert details.materials == []

    @pytest.mark.asyncio
    async def test_one_row_per_month(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        may = await repo.get_or_create_period(plan.id, 2025, 5)
        again = await repo.get_or_create_period(plan.id, 2025, 5)
        june = await repo.get_or_create_period(plan.id, 2025, 6)

        assert may.id == again.id
        assert june.id != may.id

    @pytest.mark.asyncio
    async def test_concurrent_insert_is_refetched(self, session_factory, clock, make_plan):
        plan = await make_plan()
        async with session_factory() as other:
            winner = await ExecutionRepository(other, clock).get_or_create_period(plan.id, 2025, 5)

        async with session_factory() as session:
            repo = ExecutionRepository(session, clock)
            # Simulate a caller that looked up the cycle before the winner inserted it
            loser = await repo._insert_or_fetch(plan.id, schemas.CycleKey.period(2025, 5), schemas.ExecutionDetails())

        assert loser.id == winner.id

    @pytest.mark.asyncio
    async def test_unknown_plan(self, async_session, clock):
        with pytest.raises(NotFound):
            await ExecutionRepository(async_session, clock).get_or_create_period(999, 2025, 5)


class TestAdHoc:

    @pytest.mark.asyncio
    async def test_recorded_done_with_supplied_amount(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        execution = await repo.record_adhoc(plan.id, schemas.ExecutionDetails(title="Fungicide"), Decimal("80"))

        assert execution.status == "done"
        assert execution.final_amount == Decimal("80.00")
        assert execution.cycle_key == f"adhoc:{NOW.isoformat()}"
        assert schemas.CycleKey.parse(execution.cycle_key).kind == schemas.CycleKind.ADHOC

    @pytest.mark.asyncio
    async def test_amount_computed_from_details(self, async_session, clock, make_plan):
        plan = await make_plan()
        details = schemas.ExecutionDetails(
            labor=Decimal("50"),
            markup_pct=Decimal("20"),
            materials=[schemas.MaterialLine(name="Mulch", quantity=Decimal("3"), unit="bag", unit_cost=Decimal("12.50"))],
        )

        execution = await ExecutionRepository(async_session, clock).record_adhoc(plan.id, details)

        assert execution.final_amount == Decimal("95.00")

    @pytest.mark.asyncio
    async def test_coexists_with_period_of_same_month(self, async_session, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, FixedClock(NOW))
        period = await repo.get_or_create_period(plan.id, NOW.year, NOW.month)
        first = await repo.record_adhoc(plan.id, schemas.ExecutionDetails(), Decimal("10"))
        repo.clock = FixedClock(NOW + timedelta(hours=1))
        second = await repo.record_adhoc(plan.id, schemas.ExecutionDetails(), Decimal("20"))

        assert len({period.id, first.id, second.id}) == 3


class TestSeasonalEvents:

    @pytest.mark.asyncio
    async def test_appends_to_current_period(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        await repo.append_seasonal_event(plan.id, schemas.SeasonalKind.FERTILIZATION, {"product": "NPK", "dose": "2kg"})
        period = await repo.append_seasonal_event(
            plan.id, schemas.SeasonalKind.PESTS, {"type": "Aphids", "severity": "low", "date": ""}
        )
        details = schemas.parse_details(period.details)

        assert period.cycle_key == "2025-05"
        assert [f.product for f in details.fertilization] == ["NPK"]
        assert details.fertilization[0].date == date(2025, 5, 20)
        assert details.pests[0].type == "Aphids"
        assert details.pests[0].date == date(2025, 5, 20)

    @pytest.mark.asyncio
    async def test_weeds_are_not_recorded_as_events(self, async_session, clock, make_plan):
        plan = await make_plan()
        with pytest.raises(ValueError):
            await ExecutionRepository(async_session, clock).append_seasonal_event(
                plan.id, schemas.SeasonalKind.WEEDS, {}
            )


class TestListExecutions:

    @pytest.mark.asyncio
    async def test_newest_first_without_template(self, async_session, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, FixedClock(datetime(2025, 3, 1)))
        await repo.get_or_create_template(plan.id)
        march = await repo.get_or_create_period(plan.id, 2025, 3)
        repo.clock = FixedClock(datetime(2025, 4, 1))
        april = await repo.get_or_create_period(plan.id, 2025, 4)

        executions = await repo.list_executions(plan.id)
        everything = await repo.list_executions(plan.id, exclude_template=False)

        assert [e.id for e in executions] == [april.id, march.id]
        assert len(everything) == 3


class TestSkipAndAppointments:

    @pytest.mark.asyncio
    async def test_skip_open_period(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)
        period = await repo.get_or_create_current_period(plan.id)

        skipped = await repo.skip_period(plan.id)

        assert skipped.id == period.id
        assert skipped.status == "skipped"
        with pytest.raises(InvalidTransition):
            await repo.skip_period(plan.id, period.id)

    @pytest.mark.asyncio
    async def test_skip_without_period(self, async_session, clock, make_plan):
        plan = await make_plan()
        with pytest.raises(ExecutionNotFound):
            await ExecutionRepository(async_session, clock).skip_period(plan.id)

    @pytest.mark.asyncio
    async def test_existing_appointment_link_is_kept(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        period, existed = await repo.link_appointment(plan.id, 501)
        again, existed_again = await repo.link_appointment(plan.id, 502)

        assert existed is False
        assert existed_again is True
        assert again.id == period.id
        assert again.linked_appointment_id == 501


class TestAdHocKeys:

    @pytest.mark.asyncio
    async def test_same_instant_gets_distinct_keys(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        first = await repo.record_adhoc(plan.id, schemas.ExecutionDetails(), Decimal("10"))
        second = await repo.record_adhoc(plan.id, schemas.ExecutionDetails(), Decimal("20"))

        assert first.id != second.id
        assert first.cycle_key == f"adhoc:{NOW.isoformat()}"
        assert second.cycle_key == f"adhoc:{(NOW + timedelta(microseconds=1)).isoformat()}"
        assert [e.id for e in await repo.list_executions(plan.id)] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_key_taken_concurrently_is_retried(self, async_session, clock, make_plan):
        plan = await make_plan()
        # The rollback on conflict expires loaded instances
        plan_id = plan.id
        repo = ExecutionRepository(async_session, clock)
        first = await repo.record_adhoc(plan_id, schemas.ExecutionDetails(), Decimal("10"))
        first_id = first.id

        async def stale_lookup(plan_id, key):
            return None

        # Every lookup misses, as if another writer inserted right after it
        repo._get_by_cycle = stale_lookup
        second = await repo.record_adhoc(plan_id, schemas.ExecutionDetails(), Decimal("20"))

        assert second.id != first_id
        assert second.cycle_key == f"adhoc:{(NOW + timedelta(microseconds=1)).isoformat()}"
        assert second.final_amount == Decimal("20.00")


class TestTaskLinks:

    @pytest.mark.asyncio
    async def test_task_linked_to_current_period(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        period, existed = await repo.link_task(plan.id, 301)

        assert existed is False
        assert period.cycle_key == "2025-05"
        assert period.status == "open"
        assert period.linked_task_id == 301

    @pytest.mark.asyncio
    async def test_existing_task_link_is_kept(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)
        period, _ = await repo.link_task(plan.id, 301)

        again, existed = await repo.link_task(plan.id, 302)

        assert existed is True
        assert again.id == period.id
        assert again.linked_task_id == 301

    @pytest.mark.asyncio
    async def test_task_and_appointment_links_are_independent(self, async_session, clock, make_plan):
        plan = await make_plan()
        repo = ExecutionRepository(async_session, clock)

        await repo.link_appointment(plan.id, 501, 2025, 6)
        period, existed = await repo.link_task(plan.id, 301, 2025, 6)

        assert existed is False
        assert period.cycle_key == "2025-06"
        assert (period.linked_appointment_id, period.linked_task_id) == (501, 301)


def test_details_must_be_an_object():
    with pytest.raises(InvalidDetails):
        schemas.parse_details(["not", "a", "document"])


def test_legacy_camel_case_fields_are_read():
    details = schemas.parse_details({"markupPct": 15, "materials": [{"name": "Soil", "quantity": 2, "unitCost": 7}]})
    assert details.markup_pct == Decimal("15")
    assert details.materials[0].unit_cost == Decimal("7")


def test_cycle_key_round_trip():
    for key in (
        schemas.CycleKey.template(),
        schemas.CycleKey.period(2025, 2),
        schemas.CycleKey.adhoc(datetime(2025, 2, 3, 4, 5, 6)),
    ):
        assert schemas.CycleKey.parse(str(key)) == key


def test_transient_execution_defaults():
    execution = PlanExecution(plan_id=1, cycle_key="2025-05", status="open", details={})
    assert schemas.parse_details(execution.details) == schemas.ExecutionDetails()
