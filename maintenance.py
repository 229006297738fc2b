"""
Startup tasks. Every step is idempotent and safe to run on each boot.
"""
import os
import logging

from auth import hash_password
from database import create_document, ensure_indexes, now, to_object_id

logger = logging.getLogger(__name__)


def publish_legacy_courses(db) -> int:
    """Courses created before publication existed have no is_published field; publish them."""
    res = db["course"].update_many({"is_published": {"$exists": False}}, {"$set": {"is_published": True}})
    if res.modified_count:
        logger.info("Published %d legacy courses", res.modified_count)
    return res.modified_count


def seed_admin(db) -> bool:
    email = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin provisioning")
        return False

    users = db["user"]
    existing = users.find_one({"email": email})
    if existing:
        if existing.get("role") != "admin":
            users.update_one({"_id": existing["_id"]}, {"$set": {"role": "admin", "updated_at": now()}})
            logger.info("Promoted %s to admin", email)
        return True

    create_document(db, "user", {
        "name": os.getenv("ADMIN_NAME", "LMS Administrator"),
        "email": email,
        "password_hash": hash_password(password),
        "role": "admin",
        "photo_url": "",
        "profile": {},
    })
    logger.info("Admin user %s created", email)
    return True


def cleanup_enrollments(db) -> int:
    """Drop enrollments and progress rows whose course no longer exists."""
    course_ids = {str(c["_id"]) for c in db["course"].find({}, {"_id": 1})}
    dangling = [
        e for e in db["enrollment"].find({}, {"course_id": 1, "user_id": 1})
        if to_object_id(e.get("course_id")) is None or e.get("course_id") not in course_ids
    ]
    for e in dangling:
        logger.info("Removing enrollment of user %s in missing course %s", e.get("user_id"), e.get("course_id"))
        db["enrollment"].delete_one({"_id": e["_id"]})

    db["progress"].delete_many({"course_id": {"$nin": list(course_ids)}})
    if dangling:
        logger.info("Enrollment cleanup removed %d invalid enrollments", len(dangling))
    return len(dangling)


def run_startup_tasks(db) -> None:
    ensure_indexes(db)
    publish_legacy_courses(db)
    seed_admin(db)
    cleanup_enrollments(db)
