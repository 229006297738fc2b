"""
Lecture completion and course progress.

Progress rows (one per user, course and lecture) are the source of truth. The
`progress` summary embedded in the enrollment document is a cache refreshed on
every completion.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from database import now, to_object_id
from enrollment import find_enrollment
from errors import InvalidReference, NotEnrolled, NotFound
from lectures import load_course

logger = logging.getLogger(__name__)


@dataclass
class CourseProgress:
    total_lectures: int
    completed_lectures: int
    progress_percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # integer half-up rounding of 100 * completed / total
    return (200 * completed + total) // (2 * total)


def _check_ids(*ids: str) -> None:
    for value in ids:
        if to_object_id(value) is None:
            raise InvalidReference("Invalid course or lecture ID")


def compute_progress(db, user_id: str, course: Dict[str, Any]) -> CourseProgress:
    course_id = str(course["_id"])
    total = len(course.get("lectures", []))
    # rows for lectures dropped from the course (playlist replace) are not counted
    completed = db["progress"].count_documents({
        "user_id": user_id,
        "course_id": course_id,
        "lecture_id": {"$in": list(course.get("lectures", []))},
        "is_completed": True,
    })
    return CourseProgress(total_lectures=total, completed_lectures=completed, progress_percentage=percentage(completed, total))


def mark_completed(db, user_id: str, course_id: str, lecture_id: str) -> CourseProgress:
    _check_ids(course_id, lecture_id)
    enrollment = find_enrollment(db, user_id, course_id)
    if not enrollment:
        raise NotEnrolled()
    course = load_course(db, course_id)
    if lecture_id not in course.get("lectures", []):
        raise NotFound("Lecture not found in this course")

    ts = now()
    db["progress"].update_one(
        {"user_id": user_id, "course_id": course_id, "lecture_id": lecture_id},
        {
            "$set": {"is_completed": True, "completed_at": ts, "last_accessed_at": ts, "updated_at": ts},
            "$setOnInsert": {"watch_time": 0, "time_spent": 0, "attempts": 1, "created_at": ts},
        },
        upsert=True,
    )

    result = compute_progress(db, user_id, course)

    enrollments = db["enrollment"]
    enrollments.update_one(
        {"_id": enrollment["_id"]},
        {"$set": {
            "progress.progress_percentage": result.progress_percentage,
            "progress.last_accessed_at": ts,
            "updated_at": ts,
        }},
    )
    # the filter keeps concurrent completions from listing the lecture twice
    enrollments.update_one(
        {"_id": enrollment["_id"], "progress.completed_lectures.lecture_id": {"$ne": lecture_id}},
        {"$push": {"progress.completed_lectures": {"lecture_id": lecture_id, "completed_at": ts}}},
    )

    logger.info("User %s completed lecture %s of course %s (%d%%)", user_id, lecture_id, course_id, result.progress_percentage)
    return result


def get_course_progress(db, user_id: str, course_id: str) -> CourseProgress:
    _check_ids(course_id)
    if not find_enrollment(db, user_id, course_id):
        raise NotEnrolled()
    return compute_progress(db, user_id, load_course(db, course_id))


def completed_lectures(db, user_id: str, course_id: str) -> List[Dict[str, Any]]:
    rows = list(db["progress"].find({"user_id": user_id, "course_id": course_id, "is_completed": True}))
    ids = [oid for oid in (to_object_id(r["lecture_id"]) for r in rows) if oid is not None]
    lectures = {str(lec["_id"]): lec for lec in db["lecture"].find({"_id": {"$in": ids}})}
    out = []
    for row in rows:
        lec = lectures.get(row["lecture_id"])
        if lec is None:
            continue
        out.append({
            "id": row["lecture_id"],
            "title": lec.get("title"),
            "sequence": lec.get("sequence"),
            "completed_at": row.get("completed_at"),
        })
    return sorted(out, key=lambda x: x.get("sequence") or 0)
