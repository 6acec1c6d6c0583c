"""Script to seed demo data into the database."""

from datetime import date, datetime, timedelta
from decimal import Decimal
import asyncio

from components.core.init_db import db_manager, get_db
from components.execution import schemas as execution_schemas
from components.execution.repository import ExecutionRepository
from components.finance.models import FinanceCategory, LedgerEntry
from components.inventory.models import StockMovement
from components.plan.models import MaintenancePlan

ACCOUNT_ID = 1


async def seed_data():
    """Seed demo data into the database."""
    await db_manager.create_all()

    async for db in get_db():
        supplies = FinanceCategory(account_id=ACCOUNT_ID, name="Supplies", type="expense")
        db.add(supplies)
        await db.commit()

        plans = [
            MaintenancePlan(
                account_id=ACCOUNT_ID,
                client_id=1,
                title="Front garden",
                preferred_weekday=1,
                preferred_week_of_month=2,
                billing_day=10,
                default_labor_cost=Decimal("250.00"),
                materials_markup_pct=Decimal("15"),
            ),
            MaintenancePlan(
                account_id=ACCOUNT_ID,
                client_id=2,
                title="Condominium lawn",
                preferred_weekday=5,
                preferred_week_of_month=1,
                default_labor_cost=Decimal("480.00"),
                materials_markup_pct=Decimal("10"),
            ),
        ]
        for plan in plans:
            db.add(plan)
        await db.commit()

        executions = ExecutionRepository(db)
        checklist = [
            execution_schemas.ChecklistEntry(key="pruning", label="Pruning"),
            execution_schemas.ChecklistEntry(key="irrigation", label="Irrigation"),
            execution_schemas.ChecklistEntry(key="mowing", label="Mowing"),
            execution_schemas.ChecklistEntry(key="fertilizing", label="Fertilizing"),
        ]
        schedule = execution_schemas.SeasonalSchedule(
            fertilization_months=[3, 9],
            pests_months=[1, 4, 7, 10],
            weeds_months=[2, 5, 8, 11],
        )
        for plan in plans:
            await executions.save_template_defaults(plan.id, checklist, schedule)

        # A fertilizer purchase and the expense paid for it
        purchase_date = date.today() - timedelta(days=3)
        db.add(StockMovement(
            account_id=ACCOUNT_ID,
            product_name="NPK 10-10-10",
            type="in",
            quantity=Decimal("5"),
            unit_cost=Decimal("20.00"),
            movement_date=purchase_date,
        ))
        db.add(LedgerEntry(
            account_id=ACCOUNT_ID,
            type="expense",
            amount=Decimal("100.00"),
            transaction_date=purchase_date,
            description="Fertilizer purchase",
            category_id=supplies.id,
            status="paid",
            paid_at=datetime.now(),
        ))
        await db.commit()
        break  # Only need one session

if __name__ == "__main__":
    asyncio.run(seed_data())
