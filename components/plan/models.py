"""Maintenance plan model for the database."""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, func
from sqlalchemy.orm import relationship

from components.core.database import Base


class MaintenancePlan(Base):
    """Recurring maintenance contract with a client."""
    __tablename__ = "maintenance_plans"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, nullable=False, index=True)
    client_id = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)

    # Recurrence rule
    preferred_weekday = Column(Integer, nullable=True)  # 0=Sunday..6=Saturday
    preferred_week_of_month = Column(Integer, nullable=True)  # 1..4
    billing_day = Column(Integer, nullable=True)  # Informational only

    # Commercial defaults
    default_labor_cost = Column(Numeric(10, 2), nullable=False, default=0)
    materials_markup_pct = Column(Numeric(6, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    executions = relationship("PlanExecution", back_populates="plan", cascade="all, delete-orphan")
