import logging

from fastapi import APIRouter, Depends

from app.dependencies import verify_api_key
from app.monitoring.models import MonitoringEvent, MonitoringEventResponse

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

router = APIRouter(
    prefix="/api/monitoring",
    tags=["monitoring"],
    dependencies=[Depends(verify_api_key)],
)


@router.post("/events", response_model=MonitoringEventResponse)
async def ingest_event(event: MonitoringEvent):
    """Write a client-reported event to the server log at its severity."""
    logger.log(
        _LEVELS[event.severity],
        "Client event %s: %s (url=%s user=%s) %s",
        event.type,
        event.message or "",
        event.url,
        event.user_id,
        event.context,
    )
    return MonitoringEventResponse()
