"""Feedback intake, listing and under-the-radar analysis endpoints."""
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Body
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from feedback_radar.api.dependencies import get_judgment_service, get_search_service
from feedback_radar.database import get_db
from feedback_radar.services.ai_base import JudgmentService
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.services.search_service import SimilaritySearch
from feedback_radar.services.under_radar_service import UnderRadarClassifier
from feedback_radar.services.workflow_queue_service import WorkflowQueueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["feedback"])


class FeedbackCreate(BaseModel):
    """Request model for submitting a feedback item."""

    source: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1)
    timestamp: int  # Event time, epoch milliseconds
    user_id: Optional[str] = None
    metadata: Optional[Any] = None  # Stored as JSON text


class AnalyzeRequest(BaseModel):
    feedbackId: int


@router.post("/feedback")
async def create_feedback(
    request: FeedbackCreate = Body(...),
    db: Session = Depends(get_db),
    search: SimilaritySearch = Depends(get_search_service),
):
    """
    Store a feedback item, index it for similarity search and submit its
    triage workflow.

    Returns:
        JSON with the new id and the workflow instance id
    """
    store = FeedbackStore(db)
    metadata = request.metadata
    if metadata is not None and not isinstance(metadata, str):
        metadata = json.dumps(metadata)

    feedback = store.insert_feedback(
        source=request.source,
        content=request.content,
        timestamp=request.timestamp,
        user_id=request.user_id,
        metadata=metadata,
    )

    await search.index_feedback(
        feedback.id,
        feedback.content,
        {"source": feedback.source, "timestamp": feedback.timestamp},
    )

    instance, _ = WorkflowQueueService(db).submit_feedback_workflow(feedback)

    return {"id": feedback.id, "success": True, "workflowInstanceId": instance.id}


@router.get("/feedback")
async def list_feedback(
    limit: int = 100,
    offset: int = 0,
    source: Optional[str] = None,
    db: Session = Depends(get_db),
):
    store = FeedbackStore(db)
    if source:
        feedback = store.list_feedback_by_source(source, limit=limit)
    else:
        feedback = store.list_feedback(limit=limit, offset=offset)
    return {"feedback": [f.to_dict() for f in feedback]}


@router.get("/feedback/{feedback_id}")
async def get_feedback(feedback_id: int, db: Session = Depends(get_db)):
    feedback = FeedbackStore(db).get_feedback(feedback_id)
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return {"feedback": feedback.to_dict()}


@router.post("/analyze")
async def analyze_feedback(
    request: AnalyzeRequest = Body(...),
    db: Session = Depends(get_db),
    judgment: JudgmentService = Depends(get_judgment_service),
):
    """Classify one feedback item as under the radar (flags at most once)."""
    store = FeedbackStore(db)
    feedback = store.get_feedback(request.feedbackId)
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")

    result = await UnderRadarClassifier(store, judgment).classify(feedback)
    return {**result.to_dict(), "feedback": feedback.to_dict()}


@router.get("/under-radar")
async def list_under_radar(db: Session = Depends(get_db)):
    """Flags joined with their feedback, highest severity first."""
    flags = FeedbackStore(db).list_flags_with_feedback()
    return {
        "underRadar": [
            {**flag.to_dict(), "content": feedback.content, "source": feedback.source}
            for flag, feedback in flags
        ]
    }
