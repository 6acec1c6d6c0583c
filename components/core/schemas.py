"""Core schemas for the application."""

from typing import Optional

from pydantic import BaseModel


class HealthCheck(BaseModel):
    """Schema for health check response."""
    service_name: str
    status: str


class ErrorResponse(BaseModel):
    """Schema for domain error responses."""
    detail: str
    ledger_entry_id: Optional[int] = None
