"""Pydantic schemas for maintenance plan data validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from components.schedule.rules import validate_recurrence


class PlanStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class PlanBase(BaseModel):
    """Base plan schema."""
    client_id: int
    title: str = Field(..., min_length=1, max_length=200)
    preferred_weekday: Optional[int] = None
    preferred_week_of_month: Optional[int] = None
    billing_day: Optional[int] = Field(None, ge=1, le=31)
    default_labor_cost: Decimal = Field(Decimal("0"), ge=0)
    materials_markup_pct: Decimal = Field(Decimal("0"), ge=0)
    status: PlanStatus = PlanStatus.ACTIVE

    @model_validator(mode="after")
    def check_recurrence(self):
        validate_recurrence(self.preferred_weekday, self.preferred_week_of_month)
        return self


class PlanCreate(PlanBase):
    """Schema for plan creation."""
    pass


class PlanUpdate(BaseModel):
    """Schema for partial plan edits."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    preferred_weekday: Optional[int] = None
    preferred_week_of_month: Optional[int] = None
    billing_day: Optional[int] = Field(None, ge=1, le=31)
    default_labor_cost: Optional[Decimal] = Field(None, ge=0)
    materials_markup_pct: Optional[Decimal] = Field(None, ge=0)
    status: Optional[PlanStatus] = None

    @field_validator("title", "default_labor_cost", "materials_markup_pct", "status")
    @classmethod
    def reject_null(cls, value):
        # These columns can be left out of an edit but never cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @model_validator(mode="after")
    def check_recurrence(self):
        validate_recurrence(self.preferred_weekday, self.preferred_week_of_month)
        return self


class Plan(PlanBase):
    """Schema for plan response."""
    id: int
    account_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PlanUploadError(BaseModel):
    """Schema for plan upload error."""
    row: int
    message: str


class PlanUploadResponse(BaseModel):
    """Schema for plan upload response."""
    success: bool
    message: str
    errors: Optional[List[PlanUploadError]] = None
