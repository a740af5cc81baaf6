"""
MongoDB access helpers.

Collections follow the lowercase model names in ``schemas.py``. Documents
leave this module with their ObjectId rendered as a string ``id``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings, get_settings

logger = logging.getLogger(__name__)

USERS = "user"
PROGRESS = "progress"
PLANS = "plan"
ALERTS = "alert"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id from a path or token; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    return out


def serialize_all(docs: Iterable[dict]) -> List[dict]:
    return [serialize(d) for d in docs]


@lru_cache(maxsize=4)
def get_client(uri: str) -> MongoClient:
    logger.info("Creating MongoDB client")
    return MongoClient(uri)


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    return get_client(settings.mongodb_uri)[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db[USERS].create_index([("email", ASCENDING)], unique=True)
    db[PROGRESS].create_index(
        [("userId", ASCENDING), ("courseId", ASCENDING)], unique=True
    )
    db[PLANS].create_index([("userId", ASCENDING), ("createdAt", ASCENDING)])
    db[ALERTS].create_index([("region", ASCENDING), ("expiresAt", ASCENDING)])


def create_document(db: Database, collection: str, data: dict) -> dict:
    """Insert ``data`` stamped with ``createdAt`` and return it serialized."""
    doc = dict(data)
    doc.setdefault("createdAt", now_iso())
    result = db[collection].insert_one(doc)
    doc["_id"] = result.inserted_id
    return serialize(doc)


def get_documents(
    db: Database,
    collection: str,
    filter_dict: Optional[dict] = None,
    newest_first: bool = False,
) -> List[dict]:
    cursor = db[collection].find(filter_dict or {})
    if newest_first:
        cursor = cursor.sort("createdAt", -1)
    return serialize_all(cursor)
