"""
Storage operations for feedback, cases, flags and daily editions.

Every write commits on its own; nothing here holds a transaction open across
calls. SQLAlchemy failures are rolled back and re-raised as PersistenceError.
"""

import logging
from datetime import datetime
from functools import wraps
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from feedback_radar.models import (
    Case,
    CaseFeedback,
    DailyEdition,
    Feedback,
    UnderRadarFlag,
    WorkflowInstance,
    WorkflowStep,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Storage failure. Fatal to the current request or workflow step attempt."""

    pass


def _persistence_errors(func):
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"{func.__name__} failed: {e}") from e

    return wrapper


class FeedbackStore:
    """Storage collaborator for the triage pipeline."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # FEEDBACK
    # =========================================================================

    @_persistence_errors
    def insert_feedback(
        self,
        source: str,
        content: str,
        timestamp: int,
        user_id: Optional[str] = None,
        metadata: Optional[str] = None,
    ) -> Feedback:
        feedback = Feedback(
            source=source,
            content=content,
            timestamp=timestamp,
            user_id=user_id,
            metadata_json=metadata,
        )
        self.db.add(feedback)
        self.db.commit()
        self.db.refresh(feedback)
        return feedback

    @_persistence_errors
    def get_feedback(self, feedback_id: int) -> Optional[Feedback]:
        return self.db.query(Feedback).filter(Feedback.id == feedback_id).first()

    @_persistence_errors
    def list_feedback(self, limit: int = 100, offset: int = 0) -> List[Feedback]:
        """Most recent feedback first (by event timestamp)."""
        return (
            self.db.query(Feedback)
            .order_by(Feedback.timestamp.desc(), Feedback.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    @_persistence_errors
    def list_feedback_by_source(self, source: str, limit: int = 50) -> List[Feedback]:
        return (
            self.db.query(Feedback)
            .filter(Feedback.source == source)
            .order_by(Feedback.timestamp.desc(), Feedback.id.desc())
            .limit(limit)
            .all()
        )

    @_persistence_errors
    def update_feedback_sentiment(self, feedback_id: int, label: str, score: float) -> bool:
        """
        Set sentiment fields once.

        Returns:
            True if the sentiment was written, False if the feedback is missing
            or already carries a sentiment.
        """
        feedback = self.db.query(Feedback).filter(Feedback.id == feedback_id).first()
        if not feedback or feedback.sentiment_label is not None:
            return False

        feedback.sentiment_label = label
        feedback.sentiment_score = score
        self.db.commit()
        return True

    # =========================================================================
    # CASES
    # =========================================================================

    @_persistence_errors
    def create_case(self, title: str, status: str = "open") -> Case:
        case = Case(title=title, status=status or "open")
        self.db.add(case)
        self.db.commit()
        self.db.refresh(case)
        return case

    @_persistence_errors
    def get_case(self, case_id: int) -> Optional[Case]:
        return self.db.query(Case).filter(Case.id == case_id).first()

    @_persistence_errors
    def list_cases(self, limit: Optional[int] = None) -> List[Case]:
        query = self.db.query(Case).order_by(Case.created_at.desc(), Case.id.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def link_feedback_to_case(self, case_id: int, feedback_id: int) -> bool:
        """
        Insert a case-feedback link if it does not exist yet.

        Returns:
            True if a new link was created. False if it already existed or
            the feedback id is unknown (stale search index entries).
        """
        try:
            if self.db.get(CaseFeedback, (case_id, feedback_id)) is not None:
                return False
            if self.db.get(Feedback, feedback_id) is None:
                logger.warning(
                    "Skipping link of unknown feedback %s to case %s", feedback_id, case_id
                )
                return False

            self.db.add(CaseFeedback(case_id=case_id, feedback_id=feedback_id))
            case = self.db.get(Case, case_id)
            if case is not None:
                case.updated_at = datetime.utcnow()
            self.db.commit()
            return True
        except IntegrityError:
            # Another worker linked the same pair first
            self.db.rollback()
            return False
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"link_feedback_to_case failed: {e}") from e

    @_persistence_errors
    def get_case_ids_for_feedback(self, feedback_id: int) -> List[int]:
        rows = (
            self.db.query(CaseFeedback.case_id)
            .filter(CaseFeedback.feedback_id == feedback_id)
            .order_by(CaseFeedback.case_id.asc())
            .all()
        )
        return [row.case_id for row in rows]

    @_persistence_errors
    def get_feedback_for_case(self, case_id: int) -> List[Feedback]:
        return (
            self.db.query(Feedback)
            .join(CaseFeedback, CaseFeedback.feedback_id == Feedback.id)
            .filter(CaseFeedback.case_id == case_id)
            .order_by(Feedback.timestamp.desc(), Feedback.id.desc())
            .all()
        )

    # =========================================================================
    # UNDER-THE-RADAR FLAGS
    # =========================================================================

    @_persistence_errors
    def insert_flag(self, feedback_id: int, severity_score: float, reason: str) -> UnderRadarFlag:
        flag = UnderRadarFlag(
            feedback_id=feedback_id,
            severity_score=severity_score,
            reason=reason,
        )
        self.db.add(flag)
        self.db.commit()
        self.db.refresh(flag)
        return flag

    @_persistence_errors
    def get_flag_by_feedback_id(self, feedback_id: int) -> Optional[UnderRadarFlag]:
        return (
            self.db.query(UnderRadarFlag)
            .filter(UnderRadarFlag.feedback_id == feedback_id)
            .order_by(UnderRadarFlag.id.asc())
            .first()
        )

    @_persistence_errors
    def list_flags_with_feedback(
        self, limit: Optional[int] = None
    ) -> List[Tuple[UnderRadarFlag, Feedback]]:
        """Flags joined with their feedback, highest severity first."""
        query = (
            self.db.query(UnderRadarFlag, Feedback)
            .join(Feedback, UnderRadarFlag.feedback_id == Feedback.id)
            .order_by(UnderRadarFlag.severity_score.desc(), UnderRadarFlag.detected_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    # =========================================================================
    # DAILY EDITIONS
    # =========================================================================

    @_persistence_errors
    def upsert_daily_edition(self, edition_date: str, content: str) -> DailyEdition:
        """Replace any edition for the date with new content (delete-then-insert, one commit)."""
        self.db.query(DailyEdition).filter(DailyEdition.edition_date == edition_date).delete(
            synchronize_session=False
        )
        # Flush the delete first so the unique edition_date is free for the insert
        self.db.flush()
        edition = DailyEdition(edition_date=edition_date, content=content)
        self.db.add(edition)
        self.db.commit()
        self.db.refresh(edition)
        return edition

    @_persistence_errors
    def get_latest_daily_edition(self) -> Optional[DailyEdition]:
        return (
            self.db.query(DailyEdition)
            .order_by(DailyEdition.created_at.desc(), DailyEdition.id.desc())
            .first()
        )

    @_persistence_errors
    def get_daily_edition_by_date(self, edition_date: str) -> Optional[DailyEdition]:
        return (
            self.db.query(DailyEdition)
            .filter(DailyEdition.edition_date == edition_date)
            .first()
        )

    @_persistence_errors
    def list_daily_editions(self, limit: int = 30) -> List[DailyEdition]:
        return (
            self.db.query(DailyEdition)
            .order_by(DailyEdition.edition_date.desc())
            .limit(limit)
            .all()
        )

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    @_persistence_errors
    def clean_database(self) -> None:
        """Delete all pipeline data, children before parents."""
        for model in (
            WorkflowStep,
            WorkflowInstance,
            DailyEdition,
            CaseFeedback,
            UnderRadarFlag,
            Case,
            Feedback,
        ):
            self.db.query(model).delete(synchronize_session=False)
        self.db.commit()
