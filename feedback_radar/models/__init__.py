"""
Database models for Feedback Radar.

Import all models here so metadata.create_all() sees every table.
"""

from feedback_radar.database import Base
from feedback_radar.models.feedback import Feedback
from feedback_radar.models.case import Case, CaseFeedback
from feedback_radar.models.under_radar_flag import UnderRadarFlag
from feedback_radar.models.daily_edition import DailyEdition
from feedback_radar.models.workflow import WorkflowInstance, WorkflowStep

__all__ = [
    "Base",
    "Feedback",
    "Case",
    "CaseFeedback",
    "UnderRadarFlag",
    "DailyEdition",
    "WorkflowInstance",
    "WorkflowStep",
]
