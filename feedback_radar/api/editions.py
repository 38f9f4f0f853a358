"""Daily edition endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from feedback_radar.database import get_db
from feedback_radar.models import DailyEdition
from feedback_radar.services.edition_service import parse_edition_content
from feedback_radar.services.feedback_store import FeedbackStore
from feedback_radar.services.workflow_queue_service import WorkflowQueueService
from feedback_radar.workflows.daily_edition_workflow import today_utc

router = APIRouter(prefix="/api", tags=["editions"])


def _edition_response(edition: DailyEdition) -> dict:
    return {
        "edition_date": edition.edition_date,
        "created_at": edition.created_at.isoformat() if edition.created_at else None,
        "content": parse_edition_content(edition.content),
    }


@router.get("/edition/latest")
async def get_latest_edition(db: Session = Depends(get_db)):
    edition = FeedbackStore(db).get_latest_daily_edition()
    if not edition:
        return {"edition": None}
    return _edition_response(edition)


@router.post("/edition/regenerate")
async def regenerate_edition(db: Session = Depends(get_db)):
    """Trigger today's edition workflow under a fresh instance key."""
    edition_date = today_utc()
    instance, _ = WorkflowQueueService(db).submit_daily_edition(edition_date, force=True)
    return {
        "success": True,
        "edition_date": edition_date,
        "workflowInstanceId": instance.id,
    }


@router.get("/edition/{edition_date}")
async def get_edition(
    edition_date: str = Path(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    db: Session = Depends(get_db),
):
    edition = FeedbackStore(db).get_daily_edition_by_date(edition_date)
    if not edition:
        raise HTTPException(status_code=404, detail="Edition not found")
    return _edition_response(edition)


@router.get("/editions")
async def list_editions(limit: int = 30, db: Session = Depends(get_db)):
    editions = FeedbackStore(db).list_daily_editions(limit=limit)
    return {
        "editions": [
            {
                "id": e.id,
                "edition_date": e.edition_date,
                "created_at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in editions
        ]
    }
