"""Maintenance plan endpoints for the API."""

import io
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.execution import schemas as execution_schemas
from components.execution.closure import ClosureWorkflow
from components.execution.repository import ExecutionRepository
from components.plan import schemas
from components.plan.repository import PlanRepository
from components.schedule import schemas as schedule_schemas
from components.schedule.service import PlanScheduler
from restapi.endpoints.auth import get_current_account

router = APIRouter(
    prefix="/maintenance",
    tags=["maintenance"],
    responses={404: {"description": "Not found"}},
)


@router.post("/plans", response_model=schemas.Plan, status_code=201)
async def create_plan(
    plan: schemas.PlanCreate,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
):
    """Create a maintenance plan."""
    repo = PlanRepository(db)
    return await repo.create(account_id, plan)


@router.get("/plans", response_model=List[schemas.Plan])
async def list_plans(
    status: Optional[schemas.PlanStatus] = Query(None, description="Filter by plan status"),
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
):
    """Get the plans of the current account."""
    repo = PlanRepository(db)
    return await repo.list_for_account(account_id, status)


@router.post("/plans/import", response_model=schemas.PlanUploadResponse)
async def upload_plans(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
):
    """
    Upload maintenance plans from a tab-separated CSV file.

    Required columns: client_id, title, preferred_weekday, preferred_week_of_month.
    Optional columns: billing_day, default_labor_cost, materials_markup_pct.

    Validations:
    - preferred_weekday must be between 0 (Sunday) and 6 (Saturday)
    - preferred_week_of_month must be between 1 and 4
    - amounts cannot be negative
    Nothing is inserted when any row is invalid.
    """
    if not file.filename.endswith('.csv'):
        return schemas.PlanUploadResponse(
            success=False,
            message="Invalid file format. Only CSV files (.csv) are supported."
        )

    repo = PlanRepository(db)
    file_content = await file.read()
    success, message, errors = await repo.upload_plans_from_csv(io.BytesIO(file_content), account_id)

    if not success:
        return schemas.PlanUploadResponse(
            success=False,
            message=message,
            errors=[schemas.PlanUploadError(**error) for error in errors]
        )
    return schemas.PlanUploadResponse(success=True, message=message)


@router.get("/plans/{plan_id}", response_model=schemas.Plan)
async def read_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
):
    """Get a specific plan by ID."""
    return await PlanRepository(db).require(plan_id, account_id)


@router.patch("/plans/{plan_id}", response_model=schemas.Plan)
async def update_plan(
    plan_id: int,
    changes: schemas.PlanUpdate,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
):
    """Edit a plan's recurrence, pricing defaults or status."""
    return await PlanRepository(db).update(plan_id, account_id, changes)


@router.get("/plans/{plan_id}/overview", response_model=schedule_schemas.PlanOverview)
async def plan_overview(
    plan_id: int,
    kind: execution_schemas.SeasonalKind = Query(
        execution_schemas.SeasonalKind.FERTILIZATION, description="Seasonal service for the next due date"
    ),
    months: Optional[int] = Query(None, ge=1, le=36, description="Progress window in months"),
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """
    Get the scheduling view of a plan.

    Returns:
    - Last done execution and days since it, and whether the plan is overdue
    - Next due date for the requested seasonal service
    - Progress summary over the trailing window
    """
    scheduler = PlanScheduler(db, clock)
    return await scheduler.overview(plan_id, account_id, kind, months)


@router.get("/plans/{plan_id}/executions", response_model=List[execution_schemas.PlanExecution])
async def list_executions(
    plan_id: int,
    include_template: bool = Query(False, description="Include the template row"),
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
):
    """Get the execution history of a plan, newest first."""
    await PlanRepository(db).require(plan_id, account_id)
    return await ExecutionRepository(db).list_executions(plan_id, exclude_template=not include_template)


@router.get("/plans/{plan_id}/template", response_model=execution_schemas.PlanExecution)
async def read_template(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Get the defaults of a plan."""
    await PlanRepository(db).require(plan_id, account_id)
    return await ExecutionRepository(db, clock).get_or_create_template(plan_id)


@router.put("/plans/{plan_id}/template", response_model=execution_schemas.PlanExecution)
async def save_template(
    plan_id: int,
    defaults: execution_schemas.TemplateDefaults,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Save the default checklist and seasonal schedule of a plan."""
    await PlanRepository(db).require(plan_id, account_id)
    repo = ExecutionRepository(db, clock)
    return await repo.save_template_defaults(plan_id, defaults.checklist, defaults.schedule)


@router.post("/plans/{plan_id}/seasonal-events", response_model=execution_schemas.PlanExecution)
async def record_seasonal_event(
    plan_id: int,
    event: execution_schemas.SeasonalEventRequest,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Record a fertilization or pest treatment in the current month."""
    await PlanRepository(db).require(plan_id, account_id)
    repo = ExecutionRepository(db, clock)
    return await repo.append_seasonal_event(plan_id, event.kind, event.entry)


@router.post("/plans/{plan_id}/adhoc", response_model=execution_schemas.PlanExecution, status_code=201)
async def record_adhoc(
    plan_id: int,
    request: execution_schemas.AdHocRequest,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Record an out-of-cycle service."""
    await PlanRepository(db).require(plan_id, account_id)
    repo = ExecutionRepository(db, clock)
    return await repo.record_adhoc(plan_id, request.details, request.final_amount)


@router.post("/plans/{plan_id}/close", response_model=execution_schemas.ClosureResult)
async def close_execution(
    plan_id: int,
    request: execution_schemas.CloseRequest,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """
    Close a billing period and bill it.

    Without execution_id the current month's period is closed. The amount
    is labor (override or plan default) plus materials with the plan markup.
    """
    workflow = ClosureWorkflow(db, clock)
    return await workflow.close_execution(
        plan_id,
        account_id=account_id,
        execution_id=request.execution_id,
        labor_override=request.labor_override,
        materials_override=request.materials_override,
        ledger_status=request.ledger_status,
        due_date=request.due_date,
    )


@router.post("/plans/{plan_id}/skip", response_model=execution_schemas.PlanExecution)
async def skip_execution(
    plan_id: int,
    request: execution_schemas.SkipRequest,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Mark an open billing period as skipped."""
    await PlanRepository(db).require(plan_id, account_id)
    return await ExecutionRepository(db, clock).skip_period(plan_id, request.execution_id)


@router.post("/plans/{plan_id}/appointment-link", response_model=execution_schemas.AppointmentLinkResult)
async def link_appointment(
    plan_id: int,
    request: execution_schemas.AppointmentLinkRequest,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Attach a scheduled appointment to a month's period, keeping an existing link."""
    await PlanRepository(db).require(plan_id, account_id)
    repo = ExecutionRepository(db, clock)
    period, existed = await repo.link_appointment(plan_id, request.appointment_id, request.year, request.month)
    return execution_schemas.AppointmentLinkResult(
        execution_id=period.id,
        appointment_id=period.linked_appointment_id,
        existed=existed,
    )


@router.post("/plans/{plan_id}/task-link", response_model=execution_schemas.TaskLinkResult)
async def link_task(
    plan_id: int,
    request: execution_schemas.TaskLinkRequest,
    db: AsyncSession = Depends(get_db),
    account_id: int = Depends(get_current_account),
    clock: Clock = Depends(get_clock),
):
    """Attach the monthly task to a month's period, keeping an existing link."""
    await PlanRepository(db).require(plan_id, account_id)
    repo = ExecutionRepository(db, clock)
    period, existed = await repo.link_task(plan_id, request.task_id, request.year, request.month)
    return execution_schemas.TaskLinkResult(
        execution_id=period.id,
        task_id=period.linked_task_id,
        existed=existed,
    )
