import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from app.dependencies import CurrentUser, get_current_user, get_query_monitor, verify_api_key
from app.errors import invalid_filters
from app.search.filters import (
    normalize_search_filters,
    query_params_to_filters,
    validate_search_filters,
)
from app.search.models import PresetsResponse, SearchRequest, SearchResults
from app.search.presets import CARGO_TYPE_LABELS, EQUIPMENT_TYPE_LABELS, default_filter_presets
from app.search.service import monitored_text, search_opportunities
from app.security.monitor import QueryMonitor

logger = logging.getLogger(__name__)

# All routes under /api/search require a valid API key in the X-API-Key header.
router = APIRouter(prefix="/api/search", tags=["search"], dependencies=[Depends(verify_api_key)])


def _prepare_filters(
    raw_filters: Any, request: Request, user: CurrentUser, monitor: QueryMonitor
) -> dict[str, Any]:
    """Rate-limit, monitor, validate and normalize raw filters for a search.

    Raises 429 for callers the monitor has flagged and 400 listing every
    validation problem.
    """
    ip_address = request.client.host if request.client else None

    if monitor.should_rate_limit(user.user_id, ip_address):
        logger.warning("Rate limited search from user %s (ip %s)", user.user_id, ip_address)
        raise HTTPException(status_code=429, detail="Too many requests")

    monitor.log_query(
        monitored_text(raw_filters),
        endpoint=request.url.path,
        user_id=user.user_id,
        tenant_id=user.tenant_id,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )

    errors = validate_search_filters(raw_filters)
    if errors:
        raise invalid_filters(errors)
    return normalize_search_filters(raw_filters)


@router.post("", response_model=SearchResults, response_model_exclude_none=True)
async def search(
    body: SearchRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    monitor: QueryMonitor = Depends(get_query_monitor),
):
    """Search opportunities with filters from a JSON body: {"filters": {...}}."""
    filters = _prepare_filters(body.filters, request, user, monitor)
    return await search_opportunities(filters, user.user_id, user.tenant_id)


@router.get("", response_model=SearchResults, response_model_exclude_none=True)
async def search_by_query(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    monitor: QueryMonitor = Depends(get_query_monitor),
):
    """Search opportunities with filters encoded as URL query parameters.

    Uses the same keys the web client puts in shareable search links,
    e.g. ?origin_city=Chicago&equipment=reefer,dry_van&page=2.
    """
    raw_filters = query_params_to_filters(request.query_params)
    filters = _prepare_filters(raw_filters, request, user, monitor)
    return await search_opportunities(filters, user.user_id, user.tenant_id)


@router.get("/presets", response_model=PresetsResponse)
async def presets():
    """Quick-filter presets and display labels for the search form."""
    return PresetsResponse(
        presets=default_filter_presets(),
        equipment_type_labels=EQUIPMENT_TYPE_LABELS,
        cargo_type_labels=CARGO_TYPE_LABELS,
    )
