from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import settings
from app.dependencies import get_query_monitor
from app.main import app
from app.security.monitor import InMemoryMonitorStore, QueryMonitor

USER_ID = "user-1"
TENANT_ID = "acme-logistics"


@pytest.fixture
def api_key():
    return settings.API_KEY


@pytest.fixture
def auth_headers(api_key):
    return {"X-API-Key": api_key, "X-User-Id": USER_ID, "X-Tenant-Id": TENANT_ID}


@pytest.fixture
def sample_opportunities():
    return [
        {
            "id": "OPP-1001",
            "tenant_id": TENANT_ID,
            "origin_city": "Chicago",
            "origin_state": "IL",
            "destination_city": "Dallas",
            "destination_state": "TX",
            "equipment_type": "dry_van",
            "cargo_type": "electronics",
            "cargo_description": "Palletized consumer electronics",
            "notes": "Appointment required",
            "pickup_date": "2027-06-15T08:00:00",
            "delivery_date": "2027-06-17T14:00:00",
            "rate": 2450,
            "rate_per_mile": 2.66,
            "weight": 18500,
            "distance": 920,
            "status": "active",
            "urgency": "flexible",
            "bids_count": 3,
            "created_at": "2027-06-01T10:00:00",
        }
    ]


def _make_mock_db(opportunities, total_count=None, bid_ids=None):
    mock_cursor = AsyncMock()
    mock_cursor.to_list = AsyncMock(return_value=opportunities)

    mock_opportunities = MagicMock()
    mock_opportunities.find = MagicMock(return_value=mock_cursor)
    mock_opportunities.count_documents = AsyncMock(
        return_value=len(opportunities) if total_count is None else total_count
    )

    mock_bids = MagicMock()
    mock_bids.distinct = AsyncMock(return_value=bid_ids or [])

    mock_db = MagicMock()
    mock_db.opportunities = mock_opportunities
    mock_db.bids = mock_bids
    return mock_db


@pytest.fixture
def monitor():
    """Fresh query monitor per test so rate limits don't leak between tests."""
    return QueryMonitor(InMemoryMonitorStore())


@pytest.fixture
def mock_db(sample_opportunities):
    return _make_mock_db(sample_opportunities)


@pytest.fixture
async def client(auth_headers, mock_db, monitor):
    app.dependency_overrides[get_query_monitor] = lambda: monitor
    with patch("app.search.service.get_database", return_value=mock_db):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            ac.headers.update(auth_headers)
            yield ac
    app.dependency_overrides.clear()
