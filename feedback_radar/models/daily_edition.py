"""DailyEdition model: one summarized newsroom artifact per calendar day."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime

from feedback_radar.database import Base


class DailyEdition(Base):
    __tablename__ = "daily_editions"

    id = Column(Integer, primary_key=True)
    edition_date = Column(String(10), nullable=False, unique=True)  # YYYY-MM-DD
    content = Column(Text, nullable=False)  # Serialized edition JSON
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<DailyEdition(edition_date={self.edition_date})>"
