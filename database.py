"""
MongoDB connection and small document helpers.

The connection is configured from DATABASE_URL / DATABASE_NAME. When they are
missing, `db` stays None and the API reports the database as unavailable.
"""
import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "lms")

db = None
if DATABASE_URL:
    try:
        client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000, tz_aware=True)
        db = client[DATABASE_NAME]
    except Exception:
        logger.exception("Could not configure MongoDB client")
        db = None


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database, collection_name: str, data: Dict[str, Any]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id as a string."""
    doc = dict(data)
    ts = now()
    doc.setdefault("created_at", ts)
    doc["updated_at"] = ts
    res = database[collection_name].insert_one(doc)
    return str(res.inserted_id)


def get_documents(database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: int = 0) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: str) -> Optional[ObjectId]:
    if value and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_public(doc):
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    d.pop("password_hash", None)
    return d


def ensure_indexes(database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["enrollment"].create_index([("user_id", ASCENDING), ("course_id", ASCENDING)], unique=True)
    database["progress"].create_index(
        [("user_id", ASCENDING), ("course_id", ASCENDING), ("lecture_id", ASCENDING)], unique=True
    )
    database["progress"].create_index([("user_id", ASCENDING), ("course_id", ASCENDING)])
    database["lecture"].create_index([("course_id", ASCENDING), ("sequence", ASCENDING)])
