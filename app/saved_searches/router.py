from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from starlette.status import HTTP_201_CREATED

from app.dependencies import CurrentUser, get_current_user, verify_api_key
from app.errors import invalid_filters
from app.saved_searches.models import (
    MessageResponse,
    SavedSearchCreate,
    SavedSearchListResponse,
    SavedSearchResponse,
    SavedSearchUpdate,
)
from app.saved_searches.service import (
    create_saved_search,
    delete_saved_search,
    get_saved_search,
    list_saved_searches,
    record_usage,
    update_saved_search,
)
from app.search.filters import normalize_search_filters, validate_search_filters

router = APIRouter(
    prefix="/api/saved-searches",
    tags=["saved-searches"],
    dependencies=[Depends(verify_api_key)],
)


def _checked_filters(filters: Any) -> dict[str, Any]:
    """Validate then normalize; saved searches are always stored normalized."""
    errors = validate_search_filters(filters)
    if errors:
        raise invalid_filters(errors)
    return normalize_search_filters(filters)


@router.get("", response_model=SavedSearchListResponse, response_model_exclude_none=True)
async def list_searches(user: CurrentUser = Depends(get_current_user)):
    """The caller's saved searches: default first, then most recently used."""
    return SavedSearchListResponse(saved_searches=await list_saved_searches(user.user_id))


@router.post(
    "",
    response_model=SavedSearchResponse,
    response_model_exclude_none=True,
    status_code=HTTP_201_CREATED,
)
async def create(body: SavedSearchCreate, user: CurrentUser = Depends(get_current_user)):
    """Save a named filter configuration, optionally as the user's default."""
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Search name is required")

    filters = _checked_filters(body.filters)
    saved = await create_saved_search(
        user_id=user.user_id,
        tenant_id=body.tenant_id or user.tenant_id,
        name=name,
        filters=filters,
        is_default=body.is_default,
    )
    return SavedSearchResponse(saved_search=saved)


@router.put("/{search_id}", response_model=SavedSearchResponse, response_model_exclude_none=True)
async def update(
    search_id: str, body: SavedSearchUpdate, user: CurrentUser = Depends(get_current_user)
):
    """Rename, re-filter or (un)set default on one of the caller's saved searches."""
    changes: dict[str, Any] = {}
    if body.filters is not None:
        changes["filters"] = _checked_filters(body.filters)
    if body.name is not None:
        name = body.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Search name is required")
        changes["name"] = name
    if body.is_default is not None:
        changes["is_default"] = body.is_default

    existing = await get_saved_search(search_id, user.user_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Saved search not found")

    updated = await update_saved_search(existing, changes)
    if not updated:
        # deleted between the lookup and the update
        raise HTTPException(status_code=404, detail="Saved search not found")
    return SavedSearchResponse(saved_search=updated)


@router.delete("/{search_id}", response_model=MessageResponse)
async def delete(search_id: str, user: CurrentUser = Depends(get_current_user)):
    if not await delete_saved_search(search_id, user.user_id):
        raise HTTPException(status_code=404, detail="Saved search not found")
    return MessageResponse(message="Saved search deleted successfully")


@router.post(
    "/{search_id}/use", response_model=SavedSearchResponse, response_model_exclude_none=True
)
async def use(search_id: str, user: CurrentUser = Depends(get_current_user)):
    """Record that the user applied this saved search (usage stats)."""
    saved = await record_usage(search_id, user.user_id)
    if not saved:
        raise HTTPException(status_code=404, detail="Saved search not found")
    return SavedSearchResponse(saved_search=saved)
