import logging

from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api.dependencies import get_session
from api.metrics import OPEN_TASKS
from api.state import Session

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(session: Session = Depends(get_session)) -> dict:
    """Health check endpoint for container orchestration."""
    config = session.config
    return {
        "status": "healthy",
        "llm_provider": config.llm_provider or "fallback",
        "remote_parser": config.remote_enabled,
        "flow_stage": session.engine.state.stage.value,
    }


@router.get("/metrics")
async def metrics(session: Session = Depends(get_session)) -> Response:
    """
    Prometheus scrape endpoint.
    """
    try:
        OPEN_TASKS.set(len(session.store.fetch_open_tasks(limit=10_000)))
    except Exception as e:
        logger.warning(f"Could not refresh open task gauge: {e}")

    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
