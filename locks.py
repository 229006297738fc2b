"""
Per-course lease used to serialize playlist imports across workers.
"""
import os
import time
import uuid
import logging
from contextlib import contextmanager
from typing import Optional

from pymongo.errors import DuplicateKeyError

from errors import ImportInProgress

logger = logging.getLogger(__name__)

LOCK_COLLECTION = "importlock"


def _lock_ttl() -> float:
    return float(os.getenv("IMPORT_LOCK_TTL", "600"))


@contextmanager
def course_import_lock(db, course_id: str, ttl: Optional[float] = None):
    """Hold the import lease for `course_id` for the duration of the block.

    Leases expire after `ttl` seconds so a crashed worker cannot block a course
    forever; an expired lease is taken over by the next importer.
    """
    ttl = _lock_ttl() if ttl is None else ttl
    locks = db[LOCK_COLLECTION]
    key = f"import:{course_id}"
    token = uuid.uuid4().hex

    doc = {"_id": key, "token": token, "expires_at": time.time() + ttl}
    try:
        locks.insert_one(doc)
    except DuplicateKeyError:
        # stale lease
        removed = locks.delete_one({"_id": key, "expires_at": {"$lt": time.time()}})
        if not removed.deleted_count:
            raise ImportInProgress("A playlist import is already running for this course")
        logger.warning("Took over expired import lock for course %s", course_id)
        try:
            locks.insert_one(doc)
        except DuplicateKeyError:
            raise ImportInProgress("A playlist import is already running for this course")

    try:
        yield token
    finally:
        locks.delete_one({"_id": key, "token": token})
