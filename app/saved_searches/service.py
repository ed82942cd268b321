import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Optional

from pymongo import ReturnDocument

from app.database import get_database
from app.saved_searches.models import SavedSearch

logger = logging.getLogger(__name__)

# Default first, then most recently used (never-used last), then newest
LIST_SORT = [("is_default", -1), ("last_used_at", -1), ("created_at", -1)]


def _now() -> datetime:
    # Naive UTC, consistent with how the rest of the collection is stored
    return datetime.now(UTC).replace(tzinfo=None)


async def _clear_default(user_id: str) -> None:
    """Unset the user's current default saved search, if any.

    Runs as a separate write before the new default is stored, so two
    concurrent "make default" requests can race. The unique partial index
    on (user_id, is_default=True) rejects the loser with DuplicateKeyError.
    """
    db = get_database()
    result = await db.saved_searches.update_many(
        {"user_id": user_id, "is_default": True},
        {"$set": {"is_default": False, "updated_at": _now()}},
    )
    if result.modified_count:
        logger.info("Cleared previous default saved search for user %s", user_id)


async def list_saved_searches(user_id: str) -> list[SavedSearch]:
    db = get_database()
    cursor = db.saved_searches.find({"user_id": user_id}, {"_id": 0}, sort=LIST_SORT)
    docs = await cursor.to_list(length=None)
    return [SavedSearch(**doc) for doc in docs]


async def get_saved_search(search_id: str, user_id: str) -> Optional[SavedSearch]:
    """Fetch a saved search only if it belongs to the user."""
    db = get_database()
    doc = await db.saved_searches.find_one({"id": search_id, "user_id": user_id}, {"_id": 0})
    if not doc:
        return None
    return SavedSearch(**doc)


async def create_saved_search(
    user_id: str,
    tenant_id: Optional[str],
    name: str,
    filters: dict[str, Any],
    is_default: bool = False,
) -> SavedSearch:
    """Store a new saved search. `filters` must already be normalized."""
    db = get_database()

    if is_default:
        await _clear_default(user_id)

    now = _now()
    doc = {
        "id": str(uuid.uuid4()),
        "tenant_id": tenant_id,
        "user_id": user_id,
        "name": name,
        "is_default": is_default,
        "filters": filters,
        "created_at": now,
        "updated_at": now,
        "last_used_at": None,
        "use_count": 0,
    }
    # insert_one adds "_id" to the dict it is given
    await db.saved_searches.insert_one(dict(doc))
    logger.info("User %s saved search %s (%r)", user_id, doc["id"], name)
    return SavedSearch(**doc)


async def update_saved_search(
    existing: SavedSearch, changes: dict[str, Any]
) -> Optional[SavedSearch]:
    """Apply a partial update. `changes["filters"]`, if present, must be normalized."""
    db = get_database()

    if changes.get("is_default") and not existing.is_default:
        await _clear_default(existing.user_id)

    doc = await db.saved_searches.find_one_and_update(
        {"id": existing.id, "user_id": existing.user_id},
        {"$set": {**changes, "updated_at": _now()}},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        return None
    return SavedSearch(**doc)


async def delete_saved_search(search_id: str, user_id: str) -> bool:
    db = get_database()
    result = await db.saved_searches.delete_one({"id": search_id, "user_id": user_id})
    if result.deleted_count:
        logger.info("User %s deleted saved search %s", user_id, search_id)
    return bool(result.deleted_count)


async def record_usage(search_id: str, user_id: str) -> Optional[SavedSearch]:
    """Bump use_count and last_used_at in a single atomic update."""
    db = get_database()
    doc = await db.saved_searches.find_one_and_update(
        {"id": search_id, "user_id": user_id},
        {"$inc": {"use_count": 1}, "$set": {"last_used_at": _now()}},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        return None
    return SavedSearch(**doc)
