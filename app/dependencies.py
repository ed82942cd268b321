import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request
from pydantic import BaseModel

from app.config import settings
from app.security.monitor import QueryMonitor


class CurrentUser(BaseModel):
    """Caller identity forwarded by the web front end.

    The front end authenticates the user and passes the ids along with the
    shared API key, so these headers are only trusted behind verify_api_key.
    """

    user_id: str
    tenant_id: Optional[str] = None


async def verify_api_key(x_api_key: str = Header(...)) -> str:
    if not hmac.compare_digest(x_api_key, settings.API_KEY):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return x_api_key


async def get_current_user(
    x_user_id: str = Header(...),
    x_tenant_id: Optional[str] = Header(None),
) -> CurrentUser:
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Invalid authentication")
    return CurrentUser(user_id=x_user_id.strip(), tenant_id=(x_tenant_id or "").strip() or None)


def get_query_monitor(request: Request) -> QueryMonitor:
    """Return the query monitor owned by the running application."""
    return request.app.state.query_monitor
