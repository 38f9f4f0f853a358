"""Durable workflow state: one instance row plus one checkpoint row per step."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from feedback_radar.database import Base


class WorkflowInstance(Base):
    """One idempotently-keyed execution of an ordered step sequence."""

    __tablename__ = "workflow_instances"

    id = Column(String(255), primary_key=True)  # Business key, e.g. "feedback-42"
    workflow_type = Column(String(50), nullable=False)  # feedback, daily_edition
    params = Column(Text, nullable=True)  # JSON

    status = Column(String(20), nullable=False, default="pending")  # pending, running, completed, failed
    current_step = Column(String(100), nullable=True)
    result = Column(Text, nullable=True)  # JSON
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    steps = relationship(
        "WorkflowStep",
        back_populates="instance",
        cascade="all, delete-orphan",
        order_by="WorkflowStep.id",
    )

    def __repr__(self):
        return f"<WorkflowInstance(id={self.id}, type={self.workflow_type}, status={self.status})>"


class WorkflowStep(Base):
    """Checkpoint for a single step of a workflow instance."""

    __tablename__ = "workflow_steps"

    id = Column(Integer, primary_key=True)
    instance_id = Column(
        String(255), ForeignKey("workflow_instances.id", ondelete="CASCADE"), nullable=False
    )
    step_name = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="running")  # running, completed, failed
    attempts = Column(Integer, nullable=False, default=0)
    output = Column(Text, nullable=True)  # JSON
    last_error = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    instance = relationship("WorkflowInstance", back_populates="steps")

    __table_args__ = (
        UniqueConstraint("instance_id", "step_name", name="uq_workflow_step"),
    )

    def __repr__(self):
        return f"<WorkflowStep(instance_id={self.instance_id}, step={self.step_name}, status={self.status})>"
