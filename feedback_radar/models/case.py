"""Case and CaseFeedback models for clustered feedback."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from feedback_radar.database import Base


class Case(Base):
    """A cluster of related feedback items under one title."""

    __tablename__ = "cases"

    id = Column(Integer, primary_key=True)
    title = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="open")  # open, closed
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    feedback_links = relationship(
        "CaseFeedback", back_populates="case", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Case(id={self.id}, status={self.status})>"


class CaseFeedback(Base):
    """Many-to-many link between cases and feedback items."""

    __tablename__ = "case_feedback"

    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), primary_key=True)
    feedback_id = Column(
        Integer, ForeignKey("feedback.id", ondelete="CASCADE"), primary_key=True
    )

    case = relationship("Case", back_populates="feedback_links")
    feedback = relationship("Feedback", back_populates="case_links")

    __table_args__ = (Index("idx_case_feedback_feedback", "feedback_id"),)

    def __repr__(self):
        return f"<CaseFeedback(case_id={self.case_id}, feedback_id={self.feedback_id})>"
