"""Feedback model: one raw input item from any source."""
from datetime import datetime
from sqlalchemy import Column, Integer, BigInteger, String, Text, DateTime, Float, Index
from sqlalchemy.orm import relationship

from feedback_radar.database import Base


class Feedback(Base):
    """Raw feedback item. Immutable apart from the sentiment fields set by the pipeline."""

    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True)
    source = Column(String(100), nullable=False)  # e.g. "github", "discord", "support"
    content = Column(Text, nullable=False)
    timestamp = Column(BigInteger, nullable=False)  # Caller-supplied event time
    user_id = Column(String(255), nullable=True)
    metadata_json = Column("metadata", Text, nullable=True)  # Opaque, stored as given

    # Set at most once by the sentiment-analysis step
    sentiment_label = Column(String(20), nullable=True)  # positive|negative|neutral
    sentiment_score = Column(Float, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    case_links = relationship("CaseFeedback", back_populates="feedback")

    __table_args__ = (
        Index("idx_feedback_timestamp", "timestamp"),
        Index("idx_feedback_source", "source"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "content": self.content,
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "metadata": self.metadata_json,
            "sentiment_label": self.sentiment_label,
            "sentiment_score": self.sentiment_score,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Feedback(id={self.id}, source={self.source})>"
