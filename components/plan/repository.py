"""Repository for maintenance plan operations."""

import logging
from decimal import Decimal, InvalidOperation
from typing import BinaryIO, Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.database import bounded
from components.core.exceptions import InvalidRecurrence, NotFound
from components.plan import schemas
from components.plan.models import MaintenancePlan
from components.schedule.rules import validate_recurrence

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["client_id", "title", "preferred_weekday", "preferred_week_of_month"]
OPTIONAL_CSV_COLUMNS = ["billing_day", "default_labor_cost", "materials_markup_pct"]


class PlanRepository:
    """Repository for maintenance plan operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, plan_id: int, account_id: Optional[int] = None) -> Optional[MaintenancePlan]:
        """Get plan by ID, optionally scoped to an account."""
        query = select(MaintenancePlan).where(MaintenancePlan.id == plan_id)
        if account_id is not None:
            query = query.where(MaintenancePlan.account_id == account_id)
        result = await bounded(self.session.execute(query), "plan lookup")
        return result.scalar_one_or_none()

    async def require(self, plan_id: int, account_id: Optional[int] = None) -> MaintenancePlan:
        """Get plan by ID or raise NotFound."""
        plan = await self.get_by_id(plan_id, account_id)
        if plan is None:
            raise NotFound("Plan", plan_id)
        return plan

    async def list_for_account(self, account_id: int, status: Optional[schemas.PlanStatus] = None) -> List[MaintenancePlan]:
        """Get all plans of an account."""
        query = select(MaintenancePlan).where(MaintenancePlan.account_id == account_id)
        if status is not None:
            query = query.where(MaintenancePlan.status == status.value)
        query = query.order_by(MaintenancePlan.id)
        result = await bounded(self.session.execute(query), "plan list")
        return list(result.scalars().all())

    async def create(self, account_id: int, plan: schemas.PlanCreate) -> MaintenancePlan:
        """Create a new plan."""
        db_plan = MaintenancePlan(account_id=account_id, **plan.model_dump(mode="python"))
        db_plan.status = plan.status.value
        self.session.add(db_plan)
        await bounded(self.session.commit(), "plan insert")
        await self.session.refresh(db_plan)
        logger.info(f"Created maintenance plan {db_plan.id} for account {account_id}")
        return db_plan

    async def update(self, plan_id: int, account_id: int, changes: schemas.PlanUpdate) -> MaintenancePlan:
        """Apply a partial edit to a plan."""
        db_plan = await self.require(plan_id, account_id)
        data = changes.model_dump(exclude_unset=True)
        # The merged rule has to be valid, not just the submitted half of it
        validate_recurrence(
            data.get("preferred_weekday", db_plan.preferred_weekday),
            data.get("preferred_week_of_month", db_plan.preferred_week_of_month),
        )
        for field, value in data.items():
            setattr(db_plan, field, value.value if isinstance(value, schemas.PlanStatus) else value)
        await bounded(self.session.commit(), "plan update")
        await self.session.refresh(db_plan)
        return db_plan

    async def upload_plans_from_csv(self, file_content: BinaryIO, account_id: int) -> Tuple[bool, str, List[Dict]]:
        """
        Upload plans from a tab-separated CSV file.

        Args:
            file_content: The CSV file content
            account_id: Account that will own the plans

        Returns:
            Tuple containing:
            - Success status (bool)
            - Message (str)
            - List of errors if any (List[Dict])
        """
        errors = []

        try:
            frame = pd.read_csv(file_content, sep="\t", dtype=str)
        except (ValueError, pd.errors.ParserError) as e:
            return False, f"Error processing file: {str(e)}", []

        missing = [column for column in CSV_COLUMNS if column not in frame.columns]
        if missing:
            return False, f"CSV file must contain {', '.join(repr(c) for c in CSV_COLUMNS)} columns", []

        plans = []
        for index, row in frame.iterrows():
            row_num = index + 2  # Account for the header row
            try:
                plans.append(self._plan_from_row(row))
            except (ValueError, InvalidOperation) as e:
                errors.append({"row": row_num, "message": str(e)})

        # If we have any errors, return them without committing
        if errors:
            return False, "Validation errors occurred", errors

        for plan in plans:
            db_plan = MaintenancePlan(account_id=account_id, **plan.model_dump(mode="python"))
            db_plan.status = plan.status.value
            self.session.add(db_plan)

        await bounded(self.session.commit(), "plan import")
        logger.info(f"Imported {len(plans)} maintenance plans for account {account_id}")
        return True, "Plans uploaded successfully", []

    @staticmethod
    def _plan_from_row(row: pd.Series) -> schemas.PlanCreate:
        def optional_int(column: str) -> Optional[int]:
            value = row.get(column)
            if value is None or pd.isna(value) or str(value).strip() == "":
                return None
            try:
                return int(value)
            except ValueError:
                raise ValueError(f"Invalid {column} value: {value}")

        def optional_decimal(column: str) -> Decimal:
            value = row.get(column)
            if value is None or pd.isna(value) or str(value).strip() == "":
                return Decimal("0")
            try:
                amount = Decimal(str(value).strip())
            except InvalidOperation:
                raise ValueError(f"Invalid {column} value: {value}")
            if amount < 0:
                raise ValueError(f"{column} cannot be negative (got {value})")
            return amount

        client_id = optional_int("client_id")
        if client_id is None:
            raise ValueError("client_id cannot be empty")
        title = row.get("title")
        if title is None or pd.isna(title) or not str(title).strip():
            raise ValueError("title cannot be empty")

        weekday = optional_int("preferred_weekday")
        week_of_month = optional_int("preferred_week_of_month")
        try:
            validate_recurrence(weekday, week_of_month)
        except InvalidRecurrence as e:
            raise ValueError(str(e))

        billing_day = optional_int("billing_day")
        if billing_day is not None and not 1 <= billing_day <= 31:
            raise ValueError(f"billing_day must be between 1 and 31 (got {billing_day})")

        return schemas.PlanCreate(
            client_id=client_id,
            title=str(title).strip(),
            preferred_weekday=weekday,
            preferred_week_of_month=week_of_month,
            billing_day=billing_day,
            default_labor_cost=optional_decimal("default_labor_cost"),
            materials_markup_pct=optional_decimal("materials_markup_pct"),
        )
