from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.search.models import SearchFilters


class SavedSearch(BaseModel):
    """A named filter configuration owned by one user.

    At most one saved search per user has is_default=True. The service clears
    the old default before writing the new one; a unique partial index on
    user_id (see scripts/seed_db.py) turns a lost race into a 409.
    """

    id: str
    tenant_id: Optional[str] = None
    user_id: str
    name: str
    is_default: bool = False
    filters: SearchFilters  # stored normalized
    created_at: datetime
    updated_at: datetime
    last_used_at: Optional[datetime] = None
    use_count: int = 0


class SavedSearchCreate(BaseModel):
    name: str = ""  # blank names get a 400 from the router, not a 422
    filters: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    tenant_id: Optional[str] = None  # defaults to the caller's tenant


class SavedSearchUpdate(BaseModel):
    """Partial update: only fields that are sent are changed."""

    name: Optional[str] = None
    filters: Optional[dict[str, Any]] = None
    is_default: Optional[bool] = None


class SavedSearchResponse(BaseModel):
    saved_search: SavedSearch


class SavedSearchListResponse(BaseModel):
    saved_searches: list[SavedSearch]


class MessageResponse(BaseModel):
    message: str
