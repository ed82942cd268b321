"""Validation and normalization of opportunity search filters.

Filters arrive as loosely-typed JSON objects (request bodies, URL query
parameters, stored saved searches). Two passes turn them into something
the query builder can trust:

- validate_search_filters() collects every field-level problem and never
  raises, so the client can show all of them at once.
- normalize_search_filters() repairs instead of rejecting: it trims strings,
  clamps numbers into range, dedupes arrays and drops anything it can't use.
  It never fails and is idempotent.

Every filter value must pass through normalize_search_filters() before it is
turned into a query or stored as a saved search. Callers that need strict
rejection run the validator first.
"""

import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Optional, Union

from app.search.models import (
    BOOLEAN_FIELDS,
    DATE_RANGE_FIELDS,
    ENUM_ARRAY_FIELDS,
    LOCATION_FIELDS,
    MAX_PAGE,
    MAX_PER_PAGE,
    MAX_RADIUS_MILES,
    MAX_SEARCH_TEXT_LENGTH,
    NUMERIC_RANGE_BOUNDS,
    SORT_FIELDS,
    SORT_ORDERS,
    FilterValidationError,
)

Number = Union[int, float]

# Human-readable names used in enum array error messages
_ENUM_LABELS = {
    "equipment_types": "equipment type",
    "cargo_types": "cargo type",
    "status_filters": "status",
    "urgency": "urgency level",
}


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _as_number(value: Any) -> Optional[float]:
    """Coerce ints, floats and numeric strings to float.

    Booleans, NaN/inf and anything unparseable return None. JSON true is an
    int subclass in Python, so it is excluded explicitly. Integers too large
    for a float become +/-inf so range checks and clamping still apply.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _tidy_number(value: float) -> Number:
    """Return whole numbers as int so 3000.0 serializes as 3000."""
    return int(value) if float(value).is_integer() else value


def is_date_only(value: str) -> bool:
    """True for a bare calendar date such as "2027-06-17"."""
    return "T" not in value and " " not in value


def _clean_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _parse_date(value: Any, end_of_day: bool = False) -> Optional[datetime]:
    """Parse an ISO 8601 date or datetime into a naive UTC datetime.

    With end_of_day, a bare date means its last second, matching how the
    query builder bounds a date-only "to".
    """
    text = _clean_string(value)
    if text is None:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    if end_of_day and is_date_only(text):
        parsed = parsed.replace(hour=23, minute=59, second=59)
    return parsed


def _clamp(value: float, floor: float, ceiling: float) -> float:
    return float(min(ceiling, max(floor, value)))


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


def _validate_date_range(value: Any, field: str) -> Optional[FilterValidationError]:
    if not isinstance(value, Mapping):
        return FilterValidationError(field=field, message="Date range must be an object")

    parsed: dict[str, datetime] = {}
    for key in ("from", "to"):
        raw = value.get(key)
        if raw is None or raw == "":
            continue
        date = _parse_date(raw, end_of_day=key == "to")
        if date is None:
            return FilterValidationError(
                field=field, message=f"Invalid '{key}' date, expected YYYY-MM-DD"
            )
        parsed[key] = date

    if "from" in parsed and "to" in parsed and parsed["from"] > parsed["to"]:
        return FilterValidationError(field=field, message="From date cannot be after To date")
    return None


def _validate_numeric_range(
    value: Any, field: str, floor: float, ceiling: float
) -> Optional[FilterValidationError]:
    if not isinstance(value, Mapping):
        return FilterValidationError(field=field, message="Range must be an object")

    low_raw, high_raw = value.get("min"), value.get("max")
    low, high = _as_number(low_raw), _as_number(high_raw)

    if low_raw is not None and low is None:
        return FilterValidationError(field=field, message="Minimum value must be a number")
    if high_raw is not None and high is None:
        return FilterValidationError(field=field, message="Maximum value must be a number")

    if low is not None and low < floor:
        return FilterValidationError(
            field=field, message=f"Minimum value cannot be less than {floor}"
        )
    if high is not None and high > ceiling:
        return FilterValidationError(
            field=field, message=f"Maximum value cannot be greater than {ceiling}"
        )
    if low is not None and high is not None and low > high:
        return FilterValidationError(
            field=field, message="Minimum value cannot be greater than maximum value"
        )
    return None


def _validate_location(value: Any, field: str) -> Optional[FilterValidationError]:
    if not isinstance(value, Mapping):
        return FilterValidationError(field=field, message="Location must be an object")

    for key in ("city", "state"):
        if value.get(key) is not None and not isinstance(value[key], str):
            return FilterValidationError(field=field, message=f"Location {key} must be text")

    radius_raw = value.get("radius")
    if radius_raw is not None:
        radius = _as_number(radius_raw)
        if radius is None or not 0 <= radius <= MAX_RADIUS_MILES:
            return FilterValidationError(
                field=field, message=f"Radius must be between 0 and {MAX_RADIUS_MILES} miles"
            )
    return None


def _validate_enum_array(
    value: Any, field: str, allowed: tuple[str, ...]
) -> Optional[FilterValidationError]:
    label = _ENUM_LABELS[field]
    if not isinstance(value, list):
        return FilterValidationError(field=field, message=f"Each {label} must be given as a list")

    entries = [entry for entry in value if entry]
    if field == "equipment_types" and not entries:
        return FilterValidationError(
            field=field, message="At least one equipment type must be selected"
        )

    invalid = [entry for entry in entries if not isinstance(entry, str) or entry not in allowed]
    if invalid:
        return FilterValidationError(
            field=field, message=f"Invalid {label}: {', '.join(str(e) for e in invalid)}"
        )
    return None


def _validate_whole_number(value: Any) -> Optional[float]:
    # Overflowing integers come back as inf and fail the range checks instead
    number = _as_number(value)
    if number is None or not (math.isinf(number) or number.is_integer()):
        return None
    return number


def validate_search_filters(filters: Any) -> list[FilterValidationError]:
    """Check a raw filter object and return every field-level problem found.

    An empty list means the filters are valid. Never raises; null values are
    treated the same as absent keys. At most one error is reported per field.
    """
    if not isinstance(filters, Mapping):
        return [FilterValidationError(field="filters", message="Filters must be an object")]

    errors: list[FilterValidationError] = []

    def check(error: Optional[FilterValidationError]) -> None:
        if error is not None:
            errors.append(error)

    for field in DATE_RANGE_FIELDS:
        if filters.get(field) is not None:
            check(_validate_date_range(filters[field], field))

    for field, (floor, ceiling) in NUMERIC_RANGE_BOUNDS.items():
        if filters.get(field) is not None:
            check(_validate_numeric_range(filters[field], field, floor, ceiling))

    for field in LOCATION_FIELDS:
        if filters.get(field) is not None:
            check(_validate_location(filters[field], field))

    for field, allowed in ENUM_ARRAY_FIELDS.items():
        if filters.get(field) is not None:
            check(_validate_enum_array(filters[field], field, allowed))

    for field in BOOLEAN_FIELDS:
        if filters.get(field) is not None and not isinstance(filters[field], bool):
            errors.append(FilterValidationError(field=field, message="Must be true or false"))

    search_text = filters.get("search_text")
    if search_text is not None:
        if not isinstance(search_text, str):
            errors.append(
                FilterValidationError(field="search_text", message="Search text must be text")
            )
        elif len(search_text) > MAX_SEARCH_TEXT_LENGTH:
            errors.append(
                FilterValidationError(
                    field="search_text",
                    message=f"Search text cannot exceed {MAX_SEARCH_TEXT_LENGTH} characters",
                )
            )

    sort_by = filters.get("sort_by")
    if sort_by is not None and sort_by not in SORT_FIELDS:
        errors.append(
            FilterValidationError(
                field="sort_by", message=f"Sort field must be one of: {', '.join(SORT_FIELDS)}"
            )
        )

    sort_order = filters.get("sort_order")
    if sort_order is not None and (
        not isinstance(sort_order, str) or sort_order.lower() not in SORT_ORDERS
    ):
        errors.append(
            FilterValidationError(field="sort_order", message="Sort order must be 'asc' or 'desc'")
        )

    if filters.get("page") is not None:
        page = _validate_whole_number(filters["page"])
        if page is None:
            errors.append(
                FilterValidationError(field="page", message="Page number must be a whole number")
            )
        elif page < 1:
            errors.append(
                FilterValidationError(field="page", message="Page number must be greater than 0")
            )
        elif page > MAX_PAGE:
            errors.append(
                FilterValidationError(
                    field="page", message=f"Page number cannot be greater than {MAX_PAGE:,}"
                )
            )

    if filters.get("per_page") is not None:
        per_page = _validate_whole_number(filters["per_page"])
        if per_page is None or not 1 <= per_page <= MAX_PER_PAGE:
            errors.append(
                FilterValidationError(
                    field="per_page",
                    message=f"Results per page must be between 1 and {MAX_PER_PAGE}",
                )
            )

    return errors


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


def _normalize_location(value: Any) -> dict[str, Any]:
    if not isinstance(value, Mapping):
        return {}
    clean: dict[str, Any] = {}
    city = _clean_string(value.get("city"))
    if city:
        clean["city"] = city
    state = _clean_string(value.get("state"))
    if state:
        clean["state"] = state.upper()
    radius = _as_number(value.get("radius"))
    if radius is not None:
        clean["radius"] = _tidy_number(_clamp(radius, 0, MAX_RADIUS_MILES))
    return clean


def _normalize_date_range(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    clean: dict[str, str] = {}
    for key in ("from", "to"):
        text = _clean_string(value.get(key))
        if text:
            clean[key] = text
    return clean


def _normalize_numeric_range(value: Any, floor: float, ceiling: float) -> dict[str, Number]:
    """Clamp both bounds into [floor, ceiling]; swap them if min > max."""
    if not isinstance(value, Mapping):
        return {}
    low, high = _as_number(value.get("min")), _as_number(value.get("max"))
    if low is not None:
        low = _clamp(low, floor, ceiling)
    if high is not None:
        high = _clamp(high, floor, ceiling)
    if low is not None and high is not None and low > high:
        low, high = high, low

    clean: dict[str, Number] = {}
    if low is not None:
        clean["min"] = _tidy_number(low)
    if high is not None:
        clean["max"] = _tidy_number(high)
    return clean


def _normalize_array(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    entries = [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]
    return list(dict.fromkeys(entries))  # dedupe, first-seen order


def normalize_search_filters(filters: Any) -> dict[str, Any]:
    """Return the canonical form of a raw filter object. Never raises.

    Empty values are dropped entirely rather than kept as "" / [] / {}, so
    an unconstrained search normalizes to {}.
    """
    if not isinstance(filters, Mapping):
        return {}

    normalized: dict[str, Any] = {}

    search_text = _clean_string(filters.get("search_text"))
    if search_text:
        normalized["search_text"] = search_text[:MAX_SEARCH_TEXT_LENGTH].rstrip()

    for field in LOCATION_FIELDS:
        location = _normalize_location(filters.get(field))
        if location:
            normalized[field] = location

    for field in DATE_RANGE_FIELDS:
        date_range = _normalize_date_range(filters.get(field))
        if date_range:
            normalized[field] = date_range

    for field, (floor, ceiling) in NUMERIC_RANGE_BOUNDS.items():
        numeric_range = _normalize_numeric_range(filters.get(field), floor, ceiling)
        if numeric_range:
            normalized[field] = numeric_range

    for field in ENUM_ARRAY_FIELDS:
        entries = _normalize_array(filters.get(field))
        if entries:
            normalized[field] = entries

    for field in BOOLEAN_FIELDS:
        if isinstance(filters.get(field), bool):
            normalized[field] = filters[field]

    sort_by = _clean_string(filters.get("sort_by"))
    if sort_by in SORT_FIELDS:
        normalized["sort_by"] = sort_by

    sort_order = _clean_string(filters.get("sort_order"))
    if sort_order and sort_order.lower() in SORT_ORDERS:
        normalized["sort_order"] = sort_order.lower()

    page = _as_number(filters.get("page"))
    if page is not None:
        normalized["page"] = int(_clamp(page, 1, MAX_PAGE))

    per_page = _as_number(filters.get("per_page"))
    if per_page is not None:
        normalized["per_page"] = int(_clamp(per_page, 1, MAX_PER_PAGE))

    return normalized


# ---------------------------------------------------------------------------
# URL query parameter mapping
# ---------------------------------------------------------------------------

# (query param, filter field, sub-key)
_NESTED_PARAMS = (
    ("origin_city", "origin", "city"),
    ("origin_state", "origin", "state"),
    ("origin_radius", "origin", "radius"),
    ("dest_city", "destination", "city"),
    ("dest_state", "destination", "state"),
    ("dest_radius", "destination", "radius"),
    ("pickup_from", "pickup_date_range", "from"),
    ("pickup_to", "pickup_date_range", "to"),
    ("delivery_from", "delivery_date_range", "from"),
    ("delivery_to", "delivery_date_range", "to"),
    ("rate_min", "rate_range", "min"),
    ("rate_max", "rate_range", "max"),
    ("rpm_min", "rate_per_mile_range", "min"),
    ("rpm_max", "rate_per_mile_range", "max"),
    ("weight_min", "weight_range", "min"),
    ("weight_max", "weight_range", "max"),
    ("distance_min", "distance_range", "min"),
    ("distance_max", "distance_range", "max"),
)

_ARRAY_PARAMS = (
    ("equipment", "equipment_types"),
    ("cargo", "cargo_types"),
    ("status", "status_filters"),
    ("urgency", "urgency"),
)

_SCALAR_PARAMS = (
    ("q", "search_text"),
    ("sort", "sort_by"),
    ("order", "sort_order"),
    ("page", "page"),
    ("per_page", "per_page"),
)


def _format_param(value: Any) -> str:
    if isinstance(value, float):
        return str(_tidy_number(value))
    return str(value)


def filters_to_query_params(filters: Any) -> list[tuple[str, str]]:
    """Serialize filters to URL query parameters (normalized first)."""
    normalized = normalize_search_filters(filters)
    params: list[tuple[str, str]] = []

    for param, field, key in _NESTED_PARAMS:
        value = normalized.get(field, {}).get(key)
        if value is not None:
            params.append((param, _format_param(value)))

    for param, field in _ARRAY_PARAMS:
        if normalized.get(field):
            params.append((param, ",".join(normalized[field])))

    for field in BOOLEAN_FIELDS:
        if normalized.get(field):
            params.append((field, "true"))

    for param, field in _SCALAR_PARAMS:
        if field in normalized:
            params.append((param, _format_param(normalized[field])))

    return params


def query_params_to_filters(params: Mapping[str, str]) -> dict[str, Any]:
    """Rebuild a raw filter object from URL query parameters.

    Values stay strings: the validator and normalizer coerce numeric strings,
    so a malformed "rate_min=abc" is reported rather than silently dropped.
    """
    filters: dict[str, Any] = {}

    for param, field, key in _NESTED_PARAMS:
        value = params.get(param)
        if value:
            filters.setdefault(field, {})[key] = value

    for param, field in _ARRAY_PARAMS:
        value = params.get(param)
        if value:
            filters[field] = value.split(",")

    for field in BOOLEAN_FIELDS:
        value = params.get(field)
        if value:
            lowered = value.strip().lower()
            filters[field] = {"true": True, "false": False}.get(lowered, value)

    for param, field in _SCALAR_PARAMS:
        value = params.get(param)
        if value:
            filters[field] = value

    return filters


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def are_filters_empty(filters: Any) -> bool:
    return not normalize_search_filters(filters)


def _format_money(value: Number) -> str:
    return f"${value:,.0f}" if float(value).is_integer() else f"${value:,.2f}"


def describe_filters(filters: Any) -> str:
    """Short human-readable summary, e.g. "from Chicago, to Dallas, reefer equipment"."""
    normalized = normalize_search_filters(filters)
    parts: list[str] = []

    origin_city = normalized.get("origin", {}).get("city")
    if origin_city:
        parts.append(f"from {origin_city}")
    destination_city = normalized.get("destination", {}).get("city")
    if destination_city:
        parts.append(f"to {destination_city}")
    if normalized.get("equipment_types"):
        parts.append(f"{', '.join(normalized['equipment_types'])} equipment")

    rate_range = normalized.get("rate_range", {})
    low, high = rate_range.get("min"), rate_range.get("max")
    if low and high:
        parts.append(f"{_format_money(low)}-{_format_money(high)}")
    elif low:
        parts.append(f"min {_format_money(low)}")
    elif high:
        parts.append(f"max {_format_money(high)}")

    return ", ".join(parts) if parts else "All opportunities"
