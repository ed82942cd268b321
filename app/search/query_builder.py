"""Translate normalized search filters into a MongoDB query.

User input only ever lands in query *values* (escaped regexes, $in lists,
range bounds), never in field names or operators: sort fields come from the
SORT_FIELDS allow-list and every text match goes through re.escape().
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional

from app.search.filters import is_date_only
from app.search.models import MAX_PAGE, MAX_PER_PAGE, SORT_FIELDS

ASCENDING = 1
DESCENDING = -1

DEFAULT_SORT_FIELD = "pickup_date"

# Document fields searched by free text
TEXT_SEARCH_FIELDS = ("cargo_description", "notes", "origin_city", "destination_city")

# (filter field, document field) for plain numeric range filters
_RANGE_FIELDS = (
    ("rate_range", "rate"),
    ("rate_per_mile_range", "rate_per_mile"),
    ("weight_range", "weight"),
    ("distance_range", "distance"),
)

_ARRAY_FIELDS = (
    ("equipment_types", "equipment_type"),
    ("cargo_types", "cargo_type"),
    ("urgency", "urgency"),
)


@dataclass
class SearchQuery:
    """Everything needed to run one page of a search against the opportunities collection."""

    filter: dict[str, Any]
    sort: list[tuple[str, int]]
    skip: int
    limit: int
    page: int
    per_page: int


def _contains_regex(value: str) -> dict[str, str]:
    """Case-insensitive literal substring match."""
    return {"$regex": re.escape(value), "$options": "i"}


def _exact_regex(value: str) -> dict[str, str]:
    """Case-insensitive whole-value match, e.g. state "tx" → "TX" only."""
    return {"$regex": "^" + re.escape(value) + "$", "$options": "i"}


def _end_of_day(value: str) -> str:
    # Stored dates are naive ISO strings; "2027-06-17" must include loads
    # delivering at "2027-06-17T14:00:00", which sorts after the bare date.
    if is_date_only(value):
        return value + "T23:59:59"
    return value


def needs_bid_lookup(filters: dict[str, Any]) -> bool:
    return any(filters.get(flag) for flag in ("only_no_bids", "only_my_bids", "exclude_my_bids"))


def build_filter(
    filters: dict[str, Any],
    *,
    tenant_id: Optional[str] = None,
    bid_opportunity_ids: Iterable[str] = (),
    my_bid_opportunity_ids: Iterable[str] = (),
) -> dict[str, Any]:
    """Build the MongoDB filter document for normalized filters.

    bid_opportunity_ids: opportunities with at least one non-cancelled bid
    (used by only_no_bids). my_bid_opportunity_ids: opportunities the
    current user has bid on (used by only_my_bids / exclude_my_bids).
    """
    query: dict[str, Any] = {}

    if tenant_id:
        query["tenant_id"] = tenant_id

    # --- Locations ---
    for filter_field, prefix in (("origin", "origin"), ("destination", "destination")):
        location = filters.get(filter_field, {})
        if location.get("city"):
            query[f"{prefix}_city"] = _contains_regex(location["city"])
        if location.get("state"):
            query[f"{prefix}_state"] = _exact_regex(location["state"])

    # --- Enumerated arrays ---
    for filter_field, doc_field in _ARRAY_FIELDS:
        if filters.get(filter_field):
            query[doc_field] = {"$in": list(filters[filter_field])}

    status_filter: dict[str, Any] = {}
    if filters.get("status_filters"):
        status_filter["$in"] = list(filters["status_filters"])
    if filters.get("exclude_locked"):
        status_filter["$ne"] = "locked"
    if status_filter:
        query["status"] = status_filter

    # --- Date ranges ---
    for filter_field, doc_field in (
        ("pickup_date_range", "pickup_date"),
        ("delivery_date_range", "delivery_date"),
    ):
        date_range = filters.get(filter_field, {})
        date_filter: dict[str, str] = {}
        if date_range.get("from"):
            date_filter["$gte"] = date_range["from"]
        if date_range.get("to"):
            date_filter["$lte"] = _end_of_day(date_range["to"])
        if date_filter:
            query[doc_field] = date_filter

    # --- Numeric ranges ---
    for filter_field, doc_field in _RANGE_FIELDS:
        numeric_range = filters.get(filter_field, {})
        range_filter: dict[str, float] = {}
        if numeric_range.get("min") is not None:
            range_filter["$gte"] = numeric_range["min"]
        if numeric_range.get("max") is not None:
            range_filter["$lte"] = numeric_range["max"]
        if range_filter:
            query[doc_field] = range_filter

    # --- Bid-based filters ---
    id_filter: dict[str, Any] = {}
    excluded: set[str] = set()
    if filters.get("only_no_bids"):
        excluded.update(bid_opportunity_ids)
    if filters.get("exclude_my_bids"):
        excluded.update(my_bid_opportunity_ids)
    if filters.get("only_my_bids"):
        id_filter["$in"] = sorted(set(my_bid_opportunity_ids))
    if excluded:
        id_filter["$nin"] = sorted(excluded)
    if id_filter:
        query["id"] = id_filter

    # --- Free text ---
    if filters.get("search_text"):
        pattern = _contains_regex(filters["search_text"])
        query["$or"] = [{doc_field: dict(pattern)} for doc_field in TEXT_SEARCH_FIELDS]

    return query


def build_sort(filters: dict[str, Any]) -> list[tuple[str, int]]:
    sort_field = filters.get("sort_by")
    if sort_field not in SORT_FIELDS:
        return [(DEFAULT_SORT_FIELD, ASCENDING)]
    direction = DESCENDING if filters.get("sort_order") == "desc" else ASCENDING
    return [(sort_field, direction)]


def build_search_query(
    filters: dict[str, Any],
    *,
    default_per_page: int = 20,
    tenant_id: Optional[str] = None,
    bid_opportunity_ids: Iterable[str] = (),
    my_bid_opportunity_ids: Iterable[str] = (),
) -> SearchQuery:
    """Build filter, sort and pagination for one page of normalized filters."""
    page = min(max(1, filters.get("page") or 1), MAX_PAGE)
    per_page = min(filters.get("per_page") or default_per_page, MAX_PER_PAGE)
    return SearchQuery(
        filter=build_filter(
            filters,
            tenant_id=tenant_id,
            bid_opportunity_ids=bid_opportunity_ids,
            my_bid_opportunity_ids=my_bid_opportunity_ids,
        ),
        sort=build_sort(filters),
        skip=(page - 1) * per_page,
        limit=per_page,
        page=page,
        per_page=per_page,
    )
