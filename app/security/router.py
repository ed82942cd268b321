from fastapi import APIRouter, Depends

from app.dependencies import get_current_user, get_query_monitor, verify_api_key
from app.security.models import SecurityMetricsResponse
from app.security.monitor import QueryMonitor

router = APIRouter(
    prefix="/api/security",
    tags=["security"],
    dependencies=[Depends(verify_api_key), Depends(get_current_user)],
)


@router.get("/metrics", response_model=SecurityMetricsResponse)
async def metrics(monitor: QueryMonitor = Depends(get_query_monitor)):
    """Suspicious-activity counters for the monitoring dashboard.

    Any authenticated user can read these for now; restricting to admins
    needs a role claim the front end doesn't forward yet.
    """
    return SecurityMetricsResponse(data=monitor.get_security_metrics(), timestamp=monitor.now())
