import logging
from typing import Any, Dict, List

from pymongo.errors import DuplicateKeyError

from database import create_document, now, to_object_id
from errors import Conflict, InvalidReference
from lectures import load_course
from schemas import Enrollment, ProgressSummary

logger = logging.getLogger(__name__)


def enroll(db, user_id: str, course_id: str) -> Dict[str, Any]:
    """Enroll a user in a course.

    A second enrollment for the same pair is rejected with Conflict; the unique
    (user_id, course_id) index keeps racing requests from both succeeding.
    """
    if to_object_id(user_id) is None:
        raise InvalidReference("Invalid user ID format")
    course = load_course(db, course_id)

    if find_enrollment(db, user_id, course_id):
        raise Conflict("Already enrolled in this course")

    ts = now()
    doc = Enrollment(
        user_id=user_id,
        course_id=course_id,
        enrolled_at=ts,
        progress=ProgressSummary(last_accessed_at=ts),
    ).model_dump()
    try:
        enrollment_id = create_document(db, "enrollment", doc)
    except DuplicateKeyError:
        raise Conflict("Already enrolled in this course")

    logger.info("User %s enrolled in course %s", user_id, course_id)
    return {
        "id": enrollment_id,
        "course_id": course_id,
        "course_title": course.get("title"),
        "enrolled_at": ts,
        "progress_percentage": 0,
    }


def find_enrollment(db, user_id: str, course_id: str):
    return db["enrollment"].find_one({"user_id": user_id, "course_id": course_id})


def list_enrollments(db, user_id: str) -> List[Dict[str, Any]]:
    return list(db["enrollment"].find({"user_id": user_id}).sort("enrolled_at", 1))


def enrolled_student_ids(db, course_id: str) -> List[str]:
    return [e["user_id"] for e in db["enrollment"].find({"course_id": course_id}, {"user_id": 1})]
