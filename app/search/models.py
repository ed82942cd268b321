from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Allowed values for enumerated filter fields
# ---------------------------------------------------------------------------

EQUIPMENT_TYPES = (
    "dry_van",
    "reefer",
    "flatbed",
    "step_deck",
    "lowboy",
    "tanker",
    "container",
    "box_truck",
    "straight_truck",
    "hotshot",
)

CARGO_TYPES = (
    "general",
    "electronics",
    "food",
    "hazmat",
    "automotive",
    "machinery",
    "textiles",
    "chemicals",
    "furniture",
    "paper",
)

OPPORTUNITY_STATUSES = ("active", "pending", "locked", "awarded", "completed", "cancelled")

URGENCY_LEVELS = ("immediate", "urgent", "flexible")

SORT_FIELDS = (
    "pickup_date",
    "delivery_date",
    "rate",
    "rate_per_mile",
    "distance",
    "created_at",
    "bids_count",
)

SORT_ORDERS = ("asc", "desc")

# Enumerated array fields and the values each one accepts
ENUM_ARRAY_FIELDS: dict[str, tuple[str, ...]] = {
    "equipment_types": EQUIPMENT_TYPES,
    "cargo_types": CARGO_TYPES,
    "status_filters": OPPORTUNITY_STATUSES,
    "urgency": URGENCY_LEVELS,
}

# (floor, ceiling) per numeric range field
NUMERIC_RANGE_BOUNDS: dict[str, tuple[float, float]] = {
    "rate_range": (0, 1_000_000),  # USD
    "rate_per_mile_range": (0, 50),  # USD per mile
    "weight_range": (0, 80_000),  # lbs, federal gross weight limit
    "distance_range": (0, 5_000),  # miles
}

LOCATION_FIELDS = ("origin", "destination")
DATE_RANGE_FIELDS = ("pickup_date_range", "delivery_date_range")
BOOLEAN_FIELDS = ("exclude_locked", "only_no_bids", "only_my_bids", "exclude_my_bids")

MAX_RADIUS_MILES = 500
MAX_SEARCH_TEXT_LENGTH = 1000
MAX_PER_PAGE = 100
# Keeps (page - 1) * per_page well inside a BSON int64 skip
MAX_PAGE = 1_000_000


# ---------------------------------------------------------------------------
# Filter shape
# ---------------------------------------------------------------------------


class LocationFilter(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None  # two-letter code, upper-cased by the normalizer
    radius: Optional[float] = None  # miles


class DateRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[str] = Field(None, alias="from")  # ISO 8601 date or datetime
    to: Optional[str] = None


class NumericRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class SearchFilters(BaseModel):
    """Canonical filter shape, as produced by normalize_search_filters().

    Requests carry filters as raw JSON objects so that the validator can
    report every problem at once; this model only describes what comes out
    of normalization (results' filters_applied, stored saved searches).
    """

    search_text: Optional[str] = None

    origin: Optional[LocationFilter] = None
    destination: Optional[LocationFilter] = None

    pickup_date_range: Optional[DateRange] = None
    delivery_date_range: Optional[DateRange] = None

    rate_range: Optional[NumericRange] = None
    rate_per_mile_range: Optional[NumericRange] = None
    weight_range: Optional[NumericRange] = None
    distance_range: Optional[NumericRange] = None

    equipment_types: Optional[list[str]] = None
    cargo_types: Optional[list[str]] = None
    status_filters: Optional[list[str]] = None
    urgency: Optional[list[str]] = None

    exclude_locked: Optional[bool] = None
    only_no_bids: Optional[bool] = None
    only_my_bids: Optional[bool] = None
    exclude_my_bids: Optional[bool] = None

    sort_by: Optional[str] = None
    sort_order: Optional[str] = None

    page: Optional[int] = None
    per_page: Optional[int] = None


class FilterValidationError(BaseModel):
    field: str  # top-level filter key the problem belongs to
    message: str


# ---------------------------------------------------------------------------
# Search request / response
# ---------------------------------------------------------------------------


class SearchRequest(BaseModel):
    filters: dict[str, Any] = Field(default_factory=dict)


class Opportunity(BaseModel):
    """A freight shipment posted for bidding, as stored in the opportunities collection."""

    model_config = ConfigDict(extra="allow")

    id: str
    tenant_id: Optional[str] = None
    origin_city: str
    origin_state: str
    destination_city: str
    destination_state: str
    equipment_type: str
    cargo_type: Optional[str] = None
    cargo_description: str = ""
    notes: str = ""
    pickup_date: str  # ISO 8601, naive UTC
    delivery_date: str
    rate: float  # USD
    rate_per_mile: Optional[float] = None
    weight: Optional[float] = None  # lbs
    distance: Optional[float] = None  # miles
    status: str = "active"
    urgency: Optional[str] = None
    bids_count: int = 0
    created_at: Optional[str] = None


class SearchResults(BaseModel):
    opportunities: list[Opportunity]
    total_count: int
    page: int
    per_page: int
    total_pages: int
    filters_applied: SearchFilters


class FilterPreset(BaseModel):
    name: str
    description: str
    filters: dict[str, Any]
    icon: Optional[str] = None


class PresetsResponse(BaseModel):
    presets: list[FilterPreset]
    equipment_type_labels: dict[str, str]
    cargo_type_labels: dict[str, str]
