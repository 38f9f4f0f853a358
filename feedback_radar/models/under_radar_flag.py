"""UnderRadarFlag model for high-severity, low-volume feedback."""
from datetime import datetime
from sqlalchemy import Column, Integer, Float, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from feedback_radar.database import Base


class UnderRadarFlag(Base):
    """
    Marks a feedback item as flying under the radar.

    At most one flag per feedback item. This is enforced by the classifier's
    check-before-insert, not by a unique constraint.
    """

    __tablename__ = "under_radar_flags"

    id = Column(Integer, primary_key=True)
    feedback_id = Column(
        Integer, ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False
    )
    severity_score = Column(Float, nullable=False)  # 0-10
    reason = Column(Text, nullable=False)
    detected_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    feedback = relationship("Feedback")

    __table_args__ = (Index("idx_under_radar_flags_feedback", "feedback_id"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "feedback_id": self.feedback_id,
            "severity_score": self.severity_score,
            "reason": self.reason,
            "detected_at": self.detected_at.isoformat() if self.detected_at else None,
        }

    def __repr__(self):
        return f"<UnderRadarFlag(id={self.id}, feedback_id={self.feedback_id}, severity={self.severity_score})>"
