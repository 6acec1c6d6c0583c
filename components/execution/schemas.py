"""Pydantic schemas for plan executions and their details document."""

from dataclasses import dataclass
import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import AliasChoices, BaseModel, Field, computed_field, field_validator

from components.core.exceptions import InvalidDetails
from components.finance.schemas import TransactionStatus

TEMPLATE_KEY = "template"
ADHOC_PREFIX = "adhoc:"


class ExecutionStatus(str, Enum):
    OPEN = "open"
    DONE = "done"
    SKIPPED = "skipped"


class CycleKind(str, Enum):
    TEMPLATE = "template"
    PERIOD = "period"
    ADHOC = "adhoc"


class SeasonalKind(str, Enum):
    FERTILIZATION = "fertilization"
    PESTS = "pests"
    WEEDS = "weeds"


@dataclass(frozen=True)
class CycleKey:
    """Which occurrence an execution represents."""
    kind: CycleKind
    year: Optional[int] = None
    month: Optional[int] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def template(cls) -> "CycleKey":
        return cls(CycleKind.TEMPLATE)

    @classmethod
    def period(cls, year: int, month: int) -> "CycleKey":
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")
        return cls(CycleKind.PERIOD, year=year, month=month)

    @classmethod
    def adhoc(cls, timestamp: datetime) -> "CycleKey":
        return cls(CycleKind.ADHOC, timestamp=timestamp)

    @classmethod
    def parse(cls, raw: str) -> "CycleKey":
        """Parse the stored string form of a cycle key."""
        if raw == TEMPLATE_KEY:
            return cls.template()
        if raw.startswith(ADHOC_PREFIX):
            return cls.adhoc(datetime.fromisoformat(raw[len(ADHOC_PREFIX):]))
        year, month = raw.split("-")
        return cls.period(int(year), int(month))

    def __str__(self) -> str:
        if self.kind == CycleKind.TEMPLATE:
            return TEMPLATE_KEY
        if self.kind == CycleKind.ADHOC:
            return f"{ADHOC_PREFIX}{self.timestamp.isoformat()}"
        return f"{self.year:04d}-{self.month:02d}"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class MaterialLine(BaseModel):
    name: str = ""
    quantity: Decimal = Field(Decimal("0"), ge=0)
    unit: str = "un"
    unit_cost: Decimal = Field(Decimal("0"), ge=0, validation_alias=AliasChoices("unit_cost", "unitCost"))

    class Config:
        populate_by_name = True


class ChecklistEntry(BaseModel):
    key: str = ""
    label: str = ""
    done: bool = False
    notes: Optional[str] = None


class FertilizationEntry(BaseModel):
    product: str = ""
    dose: str = ""
    area: str = ""
    date: Optional[dt.date] = None

    @field_validator("date", mode="before")
    @classmethod
    def blank_date(cls, value: Any) -> Any:
        return _blank_to_none(value)


class PestEntry(BaseModel):
    type: str = ""
    severity: str = ""
    treatment: str = ""
    date: Optional[dt.date] = None
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def blank_date(cls, value: Any) -> Any:
        return _blank_to_none(value)


class SeasonalSchedule(BaseModel):
    """Months (1..12) in which each seasonal service is due."""
    fertilization_months: List[int] = []
    pests_months: List[int] = []
    weeds_months: List[int] = []

    @field_validator("fertilization_months", "pests_months", "weeds_months")
    @classmethod
    def check_months(cls, months: List[int]) -> List[int]:
        for month in months:
            if not 1 <= month <= 12:
                raise ValueError(f"Months must be between 1 and 12 (got {month})")
        return sorted(set(months))

    def months_for(self, kind: SeasonalKind) -> List[int]:
        return getattr(self, f"{kind.value}_months")


class ExecutionDetails(BaseModel):
    """
    Structured details of an execution.

    Unknown fields are kept as they are so that documents written by other
    clients survive a read-modify-write cycle.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    labor: Optional[Decimal] = Field(None, ge=0)
    materials: List[MaterialLine] = []
    markup_pct: Optional[Decimal] = Field(None, ge=0, validation_alias=AliasChoices("markup_pct", "markupPct"))
    checklist: List[ChecklistEntry] = []
    fertilization: List[FertilizationEntry] = []
    pests: List[PestEntry] = []
    photos: List[str] = []
    schedule: Optional[SeasonalSchedule] = None

    class Config:
        extra = "allow"
        populate_by_name = True


SEASONAL_ENTRY_TYPES = {
    SeasonalKind.FERTILIZATION: FertilizationEntry,
    SeasonalKind.PESTS: PestEntry,
}


def parse_details(raw: Any) -> ExecutionDetails:
    """Validate a stored details document."""
    if raw is None:
        return ExecutionDetails()
    if not isinstance(raw, dict):
        raise InvalidDetails(f"Execution details must be an object, got {type(raw).__name__}")
    return ExecutionDetails.model_validate(raw)


def dump_details(details: ExecutionDetails) -> Dict[str, Any]:
    """Serialize details for the JSON column."""
    return details.model_dump(mode="json", exclude_none=True)


class PlanExecution(BaseModel):
    """Schema for execution response."""
    id: int
    plan_id: int
    cycle_key: str
    status: ExecutionStatus
    final_amount: Optional[Decimal] = None
    details: ExecutionDetails = ExecutionDetails()
    linked_task_id: Optional[int] = None
    linked_appointment_id: Optional[int] = None
    linked_ledger_entry_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @computed_field
    @property
    def cycle_kind(self) -> CycleKind:
        return CycleKey.parse(self.cycle_key).kind


class TemplateDefaults(BaseModel):
    """Schema for saving plan defaults."""
    checklist: List[ChecklistEntry] = []
    schedule: SeasonalSchedule = SeasonalSchedule()


class SeasonalEventRequest(BaseModel):
    """Schema for recording a fertilization or pest event."""
    kind: SeasonalKind
    entry: Dict[str, Any] = {}

    @field_validator("kind")
    @classmethod
    def check_kind(cls, kind: SeasonalKind) -> SeasonalKind:
        if kind not in SEASONAL_ENTRY_TYPES:
            raise ValueError(f"Events can only be recorded for {', '.join(k.value for k in SEASONAL_ENTRY_TYPES)}")
        return kind


class AdHocRequest(BaseModel):
    """Schema for an out-of-cycle service."""
    details: ExecutionDetails = ExecutionDetails()
    final_amount: Optional[Decimal] = Field(None, ge=0)


class CloseRequest(BaseModel):
    """Schema for closing a billing period."""
    execution_id: Optional[int] = None
    labor_override: Optional[Decimal] = Field(None, ge=0)
    materials_override: Union[List[MaterialLine], Decimal, None] = None
    ledger_status: TransactionStatus = TransactionStatus.PAID
    due_date: Optional[date] = None


class ClosureResult(BaseModel):
    """Schema for closure confirmation."""
    execution_id: int
    final_amount: Decimal
    ledger_entry_id: int


class SkipRequest(BaseModel):
    execution_id: Optional[int] = None


class AppointmentLinkRequest(BaseModel):
    appointment_id: int
    year: Optional[int] = None
    month: Optional[int] = Field(None, ge=1, le=12)


class AppointmentLinkResult(BaseModel):
    execution_id: int
    appointment_id: int
    existed: bool


class TaskLinkRequest(BaseModel):
    task_id: int
    year: Optional[int] = None
    month: Optional[int] = Field(None, ge=1, le=12)


class TaskLinkResult(BaseModel):
    execution_id: int
    task_id: int
    existed: bool
