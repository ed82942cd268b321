from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from pymongo.errors import DuplicateKeyError

from app.main import app
from app.saved_searches.service import LIST_SORT
from tests.conftest import TENANT_ID, USER_ID

pytestmark = pytest.mark.asyncio

SAVED_SEARCH = {
    "id": "ss-1",
    "tenant_id": TENANT_ID,
    "user_id": USER_ID,
    "name": "Reefers out of Fresno",
    "is_default": False,
    "filters": {"origin": {"city": "Fresno", "state": "CA"}, "equipment_types": ["reefer"]},
    "created_at": "2027-01-10T12:00:00",
    "updated_at": "2027-01-10T12:00:00",
    "last_used_at": None,
    "use_count": 3,
}

DEFAULT_SEARCH = {**SAVED_SEARCH, "id": "ss-2", "name": "Everything", "is_default": True, "filters": {}}


# --- Helper to build a mock database ---

def _make_mock_db(find_one_result=None, docs=None, updated_doc=None, deleted_count=1):
    """Create a mock MongoDB with a saved_searches collection.

    Every write is also appended to `mock_db.write_log` so tests can check
    the order of the clear-default and insert/update calls.
    """
    write_log: list[str] = []

    def _logged(name, return_value=None):
        async def _call(*args, **kwargs):
            write_log.append(name)
            return return_value

        return AsyncMock(side_effect=_call)

    mock_cursor = AsyncMock()
    mock_cursor.to_list = AsyncMock(return_value=docs or [])

    mock_collection = MagicMock()
    mock_collection.find = MagicMock(return_value=mock_cursor)
    mock_collection.find_one = AsyncMock(return_value=find_one_result)
    mock_collection.insert_one = _logged("insert_one")
    mock_collection.update_many = _logged("update_many", MagicMock(modified_count=1))
    mock_collection.find_one_and_update = _logged("find_one_and_update", updated_doc)
    mock_collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=deleted_count))

    mock_db = MagicMock()
    mock_db.saved_searches = mock_collection
    mock_db.write_log = write_log
    return mock_db


async def _client_for(auth_headers):
    transport = ASGITransport(app=app)
    ac = AsyncClient(transport=transport, base_url="http://test")
    ac.headers.update(auth_headers)
    return ac


@pytest.fixture
def saved_db():
    return _make_mock_db(find_one_result=SAVED_SEARCH, docs=[DEFAULT_SEARCH, SAVED_SEARCH])


@pytest.fixture
async def client(auth_headers, saved_db):
    with patch("app.saved_searches.service.get_database", return_value=saved_db):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            ac.headers.update(auth_headers)
            yield ac


# --- List ---

async def test_list_saved_searches(client, saved_db):
    response = await client.get("/api/saved-searches")
    assert response.status_code == 200
    names = [s["name"] for s in response.json()["saved_searches"]]
    assert names == ["Everything", "Reefers out of Fresno"]

    args, kwargs = saved_db.saved_searches.find.call_args
    assert args[0] == {"user_id": USER_ID}
    assert kwargs["sort"] == LIST_SORT


# --- Create ---

async def test_create_saved_search(client, saved_db):
    body = {
        "name": "  Chicago dry vans  ",
        "filters": {"origin": {"city": "  Chicago "}, "equipment_types": ["dry_van", "dry_van"]},
    }
    response = await client.post("/api/saved-searches", json=body)
    assert response.status_code == 201

    saved = response.json()["saved_search"]
    assert saved["name"] == "Chicago dry vans"
    assert saved["user_id"] == USER_ID
    assert saved["tenant_id"] == TENANT_ID
    assert saved["is_default"] is False
    assert saved["use_count"] == 0
    assert saved["filters"] == {"origin": {"city": "Chicago"}, "equipment_types": ["dry_van"]}

    stored = saved_db.saved_searches.insert_one.call_args[0][0]
    assert stored["filters"] == saved["filters"]
    assert "_id" not in saved
    assert saved_db.write_log == ["insert_one"]


async def test_create_default_clears_previous_default_first(client, saved_db):
    body = {"name": "My default", "filters": {}, "is_default": True}
    response = await client.post("/api/saved-searches", json=body)
    assert response.status_code == 201
    assert response.json()["saved_search"]["is_default"] is True

    assert saved_db.write_log == ["update_many", "insert_one"]
    query, update = saved_db.saved_searches.update_many.call_args[0]
    assert query == {"user_id": USER_ID, "is_default": True}
    assert update["$set"]["is_default"] is False


async def test_create_requires_name(client, saved_db):
    response = await client.post("/api/saved-searches", json={"name": "   ", "filters": {}})
    assert response.status_code == 400
    assert response.json()["detail"] == "Search name is required"
    saved_db.saved_searches.insert_one.assert_not_awaited()


async def test_create_rejects_invalid_filters(client, saved_db):
    body = {"name": "Bad", "filters": {"pickup_date_range": {"from": "2024-12-31", "to": "2024-01-01"}}}
    response = await client.post("/api/saved-searches", json=body)
    assert response.status_code == 400
    assert response.json()["detail"]["validation_errors"] == [
        {"field": "pickup_date_range", "message": "From date cannot be after To date"}
    ]
    saved_db.saved_searches.insert_one.assert_not_awaited()


async def test_create_default_race_returns_409(client, saved_db):
    saved_db.saved_searches.insert_one = AsyncMock(
        side_effect=DuplicateKeyError("E11000 duplicate key error index: one_default_per_user")
    )
    response = await client.post(
        "/api/saved-searches", json={"name": "Racer", "filters": {}, "is_default": True}
    )
    assert response.status_code == 409


# --- Update ---

async def test_update_saved_search(client, saved_db):
    updated = {**SAVED_SEARCH, "name": "Renamed", "is_default": True}
    saved_db.saved_searches.find_one_and_update = AsyncMock(return_value=updated)

    response = await client.put(
        "/api/saved-searches/ss-1", json={"name": " Renamed ", "is_default": True}
    )
    assert response.status_code == 200
    assert response.json()["saved_search"]["name"] == "Renamed"

    saved_db.saved_searches.update_many.assert_awaited_once()
    query, update = saved_db.saved_searches.find_one_and_update.call_args[0]
    assert query == {"id": "ss-1", "user_id": USER_ID}
    assert update["$set"]["name"] == "Renamed"
    assert update["$set"]["is_default"] is True
    assert "filters" not in update["$set"]


async def test_update_normalizes_filters(client, saved_db):
    saved_db.saved_searches.find_one_and_update = AsyncMock(return_value=SAVED_SEARCH)
    response = await client.put(
        "/api/saved-searches/ss-1", json={"filters": {"destination": {"state": " ga "}, "page": 0}}
    )
    assert response.status_code == 400  # page 0 is rejected, not clamped

    response = await client.put(
        "/api/saved-searches/ss-1", json={"filters": {"destination": {"state": " ga "}}}
    )
    assert response.status_code == 200
    update = saved_db.saved_searches.find_one_and_update.call_args[0][1]
    assert update["$set"]["filters"] == {"destination": {"state": "GA"}}
    saved_db.saved_searches.update_many.assert_not_awaited()


async def test_update_already_default_does_not_clear(auth_headers):
    mock_db = _make_mock_db(find_one_result=DEFAULT_SEARCH, updated_doc=DEFAULT_SEARCH)
    with patch("app.saved_searches.service.get_database", return_value=mock_db):
        async with await _client_for(auth_headers) as ac:
            response = await ac.put("/api/saved-searches/ss-2", json={"is_default": True})
            assert response.status_code == 200
    assert mock_db.write_log == ["find_one_and_update"]


async def test_update_not_found(auth_headers):
    mock_db = _make_mock_db(find_one_result=None)
    with patch("app.saved_searches.service.get_database", return_value=mock_db):
        async with await _client_for(auth_headers) as ac:
            response = await ac.put("/api/saved-searches/missing", json={"name": "x"})
            assert response.status_code == 404


# --- Delete ---

async def test_delete_saved_search(client, saved_db):
    response = await client.delete("/api/saved-searches/ss-1")
    assert response.status_code == 200
    assert response.json() == {"message": "Saved search deleted successfully"}
    saved_db.saved_searches.delete_one.assert_awaited_once_with({"id": "ss-1", "user_id": USER_ID})


async def test_delete_not_found(auth_headers):
    mock_db = _make_mock_db(deleted_count=0)
    with patch("app.saved_searches.service.get_database", return_value=mock_db):
        async with await _client_for(auth_headers) as ac:
            response = await ac.delete("/api/saved-searches/ss-404")
            assert response.status_code == 404


# --- Usage ---

async def test_use_increments_count(client, saved_db):
    used = {**SAVED_SEARCH, "use_count": 4, "last_used_at": "2027-02-01T09:00:00"}
    saved_db.saved_searches.find_one_and_update = AsyncMock(return_value=used)

    response = await client.post("/api/saved-searches/ss-1/use")
    assert response.status_code == 200
    assert response.json()["saved_search"]["use_count"] == 4

    query, update = saved_db.saved_searches.find_one_and_update.call_args[0]
    assert query == {"id": "ss-1", "user_id": USER_ID}
    assert update["$inc"] == {"use_count": 1}
    assert "last_used_at" in update["$set"]


async def test_use_not_found(client, saved_db):
    saved_db.saved_searches.find_one_and_update = AsyncMock(return_value=None)
    response = await client.post("/api/saved-searches/ss-404/use")
    assert response.status_code == 404
