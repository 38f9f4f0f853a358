import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from feedback_radar.api import cases, editions, feedback, workflows
from feedback_radar.services.feedback_store import PersistenceError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Feedback Radar", version="0.1.0")


@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})


# Include routers
app.include_router(feedback.router)
app.include_router(cases.router)
app.include_router(editions.router)
app.include_router(workflows.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
