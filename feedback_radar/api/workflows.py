"""Workflow instance status endpoint."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from feedback_radar.database import get_db
from feedback_radar.services.workflow_service import WorkflowService

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


@router.get("/{instance_id}")
async def get_workflow_status(instance_id: str, db: Session = Depends(get_db)):
    status = WorkflowService(db).get_status(instance_id)
    if "error" in status:
        raise HTTPException(status_code=404, detail=status["error"])
    return status
