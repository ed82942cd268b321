import logging
import math
from collections.abc import Mapping
from typing import Any, Optional

from app.config import settings
from app.database import get_database
from app.search.models import Opportunity, SearchFilters, SearchResults
from app.search.query_builder import build_search_query, needs_bid_lookup

logger = logging.getLogger(__name__)


def monitored_text(filters: Any) -> str:
    """Collect the free-text parts of raw filters for the query monitor.

    Only user-typed strings are worth scanning; enums and numbers are
    checked against allow-lists by the validator.
    """
    if not isinstance(filters, Mapping):
        return ""
    parts: list[str] = []
    if isinstance(filters.get("search_text"), str):
        parts.append(filters["search_text"])
    for field in ("origin", "destination"):
        location = filters.get(field)
        if isinstance(location, Mapping):
            parts.extend(
                location[key] for key in ("city", "state") if isinstance(location.get(key), str)
            )
    return " ".join(parts)


async def _get_bid_opportunity_ids(
    filters: dict[str, Any], user_id: str
) -> tuple[list[str], list[str]]:
    """Look up opportunity ids for the bid-based filters.

    Returns (ids with any non-cancelled bid, ids the user has bid on). Each
    lookup only runs when a filter needs it.
    """
    db = get_database()
    bid_ids: list[str] = []
    my_bid_ids: list[str] = []
    if filters.get("only_no_bids"):
        bid_ids = await db.bids.distinct("opportunity_id", {"status": {"$ne": "cancelled"}})
    if filters.get("only_my_bids") or filters.get("exclude_my_bids"):
        my_bid_ids = await db.bids.distinct("opportunity_id", {"carrier_id": user_id})
    return bid_ids, my_bid_ids


async def search_opportunities(
    filters: dict[str, Any],
    user_id: str,
    tenant_id: Optional[str] = None,
) -> SearchResults:
    """Run one page of a search. `filters` must already be normalized."""
    db = get_database()

    bid_ids: list[str] = []
    my_bid_ids: list[str] = []
    if needs_bid_lookup(filters):
        bid_ids, my_bid_ids = await _get_bid_opportunity_ids(filters, user_id)

    search = build_search_query(
        filters,
        default_per_page=settings.DEFAULT_PER_PAGE,
        tenant_id=tenant_id,
        bid_opportunity_ids=bid_ids,
        my_bid_opportunity_ids=my_bid_ids,
    )

    total_count = await db.opportunities.count_documents(search.filter)
    cursor = db.opportunities.find(
        search.filter,
        {"_id": 0},
        sort=search.sort,
        skip=search.skip,
        limit=search.limit,
    )
    docs = await cursor.to_list(length=search.limit)

    logger.info(
        "Search by user %s matched %d opportunities (page %d, %d per page)",
        user_id,
        total_count,
        search.page,
        search.per_page,
    )

    return SearchResults(
        opportunities=[Opportunity(**doc) for doc in docs],
        total_count=total_count,
        page=search.page,
        per_page=search.per_page,
        total_pages=math.ceil(total_count / search.per_page),
        filters_applied=SearchFilters.model_validate(filters),
    )
