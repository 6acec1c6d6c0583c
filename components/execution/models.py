"""Plan execution model for the database."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from components.core.database import Base


class PlanExecution(Base):
    """One cycle of a maintenance plan: template, billing period or ad-hoc service."""
    __tablename__ = "plan_executions"
    __table_args__ = (
        UniqueConstraint("plan_id", "cycle_key", name="uq_plan_executions_plan_cycle"),
    )

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("maintenance_plans.id"), nullable=False, index=True)
    cycle_key = Column(String(64), nullable=False)  # "template", "YYYY-MM" or "adhoc:<timestamp>"
    status = Column(String(20), nullable=False, default="open")
    final_amount = Column(Numeric(10, 2), nullable=True)  # Set only when done
    details = Column(JSON, nullable=False, default=dict)

    # Weak references to rows owned by other subsystems
    linked_task_id = Column(Integer, nullable=True)
    linked_appointment_id = Column(Integer, nullable=True)
    linked_ledger_entry_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True)

    plan = relationship("MaintenancePlan", back_populates="executions")
