from datetime import UTC, date, datetime
from typing import Optional

from app.search.models import FilterPreset

EQUIPMENT_TYPE_LABELS: dict[str, str] = {
    "dry_van": "Dry Van",
    "reefer": "Refrigerated",
    "flatbed": "Flatbed",
    "step_deck": "Step Deck",
    "lowboy": "Lowboy",
    "tanker": "Tanker",
    "container": "Container",
    "box_truck": "Box Truck",
    "straight_truck": "Straight Truck",
    "hotshot": "Hotshot",
}

CARGO_TYPE_LABELS: dict[str, str] = {
    "general": "General Freight",
    "electronics": "Electronics",
    "food": "Food & Beverage",
    "hazmat": "Hazmat",
    "automotive": "Automotive",
    "machinery": "Machinery",
    "textiles": "Textiles",
    "chemicals": "Chemicals",
    "furniture": "Furniture",
    "paper": "Paper Products",
}


def default_filter_presets(today: Optional[date] = None) -> list[FilterPreset]:
    """Quick filters offered above the search form.

    Built per call because "Today's Pickups" depends on the current date.
    """
    day = (today or datetime.now(UTC).date()).isoformat()
    return [
        FilterPreset(
            name="Today's Pickups",
            description="Opportunities picking up today",
            filters={"pickup_date_range": {"from": day, "to": day}},
            icon="calendar",
        ),
        FilterPreset(
            name="High Value Loads",
            description="Loads over $3,000",
            filters={"rate_range": {"min": 3000}},
            icon="money",
        ),
        FilterPreset(
            name="Short Haul",
            description="Under 250 miles",
            filters={"distance_range": {"max": 250}},
            icon="truck",
        ),
        FilterPreset(
            name="Long Haul",
            description="Over 1,000 miles",
            filters={"distance_range": {"min": 1000}},
            icon="highway",
        ),
        FilterPreset(
            name="Refrigerated Only",
            description="Reefer equipment only",
            filters={"equipment_types": ["reefer"]},
            icon="snowflake",
        ),
        FilterPreset(
            name="No Bids Yet",
            description="Opportunities with no bids",
            filters={"only_no_bids": True},
            icon="target",
        ),
    ]
