"""Pydantic schemas for plan scheduling reports."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel

from components.execution.schemas import SeasonalKind


class TimelineStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    PENDING = "pending"


class PlanStatusReport(BaseModel):
    """Schema for plan overdue status."""
    last_done_at: Optional[datetime] = None
    days_since_last_done: Optional[int] = None
    overdue: bool


class ChecklistProgress(BaseModel):
    """Schema for completion of one checklist label."""
    label: str
    done: int
    total: int
    percent: int


class ProgressSummary(BaseModel):
    """Schema for progress over a trailing window."""
    window_months: int
    window_start: date
    execution_count: int = 0
    fertilization_count: int = 0
    pest_count: int = 0
    checklist: List[ChecklistProgress] = []


class MonthStatus(BaseModel):
    """Schema for the billing period of one month."""
    cycle_key: str
    year: int
    month: int
    status: TimelineStatus
    execution_id: Optional[int] = None


class PlanOverview(BaseModel):
    """Schema for the scheduling view of a plan."""
    plan_id: int
    status: PlanStatusReport
    next_due_kind: SeasonalKind
    next_due: Optional[date] = None
    summary: ProgressSummary
    timeline: List[MonthStatus] = []
