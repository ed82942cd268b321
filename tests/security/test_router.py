import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app

pytestmark = pytest.mark.asyncio


async def test_metrics_reflect_monitor(client, monitor):
    monitor.log_query("' UNION SELECT * FROM users --", user_id="attacker")

    response = await client.get("/api/security/metrics")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["critical_alerts"] == 1
    assert body["data"]["top_suspicious_users"] == [{"user_id": "attacker", "count": 1}]
    assert "timestamp" in body


async def test_metrics_count_searches(client):
    await client.post("/api/search", json={"filters": {"search_text": "reefer"}})
    response = await client.get("/api/security/metrics")
    assert response.json()["data"]["total_queries"] == 1


async def test_metrics_require_user(api_key):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/api/security/metrics", headers={"X-API-Key": api_key})
        assert response.status_code == 422
