"""Case endpoints: listing, manual grouping and the case review."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Body
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from feedback_radar.api.dependencies import get_judgment_service, get_search_service
from feedback_radar.database import get_db
from feedback_radar.services.ai_base import JudgmentService
from feedback_radar.services.case_service import CaseClusterer, CaseReviewer
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.services.search_service import SimilaritySearch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases", tags=["cases"])


class CaseCreate(BaseModel):
    """Request model for manually grouping feedback into a case."""

    title: str = Field(..., min_length=1, max_length=500)
    feedbackIds: List[int] = []
    includeSimilar: bool = False  # Expand a single seed id with its neighbours
    similarLimit: Optional[int] = Field(default=None, gt=0)


@router.get("")
async def list_cases(db: Session = Depends(get_db)):
    return {"cases": [case.to_dict() for case in FeedbackStore(db).list_cases()]}


@router.post("")
async def create_case(
    request: CaseCreate = Body(...),
    db: Session = Depends(get_db),
    search: SimilaritySearch = Depends(get_search_service),
):
    """
    Create an open case from the given feedback ids.

    With includeSimilar and exactly one id, the seed's nearest neighbours are
    linked too. Unknown feedback ids are skipped.
    """
    clusterer = CaseClusterer(FeedbackStore(db), search)

    if request.includeSimilar and len(request.feedbackIds) == 1:
        try:
            case = await clusterer.expand_from_seed(
                request.feedbackIds[0], request.title, top_k=request.similarLimit
            )
            return {"id": case.id, "success": True}
        except LookupError:
            logger.info("Seed feedback %s not found, creating case without expansion",
                        request.feedbackIds[0])

    case = clusterer.create_case(request.title, request.feedbackIds)
    return {"id": case.id, "success": True}


@router.get("/{case_id}")
async def get_case(
    case_id: int,
    db: Session = Depends(get_db),
    judgment: JudgmentService = Depends(get_judgment_service),
):
    """Case with its feedback plus the prosecution, defense and verdict."""
    store = FeedbackStore(db)
    case = store.get_case(case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")

    return await CaseReviewer(store, judgment).review(case)
