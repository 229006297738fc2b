import logging
from typing import Any, Dict, List, Optional

from database import create_document, get_documents, now, to_object_id
from errors import InvalidReference, NotFound, RemoteUnavailable, ValidationFailed
from schemas import Lecture
from youtube import YouTubeClient, canonical_video_url, resolve_video_id

logger = logging.getLogger(__name__)


def load_course(db, course_id: str) -> Dict[str, Any]:
    oid = to_object_id(course_id)
    if oid is None:
        raise InvalidReference("Invalid course ID format")
    course = db["course"].find_one({"_id": oid})
    if not course:
        raise NotFound("Course not found")
    return course


def lecture_object_ids(course: Dict[str, Any]) -> list:
    return [oid for oid in (to_object_id(lid) for lid in course.get("lectures", [])) if oid is not None]


def course_lectures(db, course: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Lectures attached to `course`, ordered by sequence."""
    ids = lecture_object_ids(course)
    if not ids:
        return []
    return list(db["lecture"].find({"_id": {"$in": ids}}).sort("sequence", 1))


def insert_lecture(db, course_id: str, title: str, video_id: str, sequence: int,
                   description: str = "", video_url: Optional[str] = None) -> Dict[str, Any]:
    doc = Lecture(
        course_id=course_id,
        title=title,
        description=description or "",
        video_url=video_url or canonical_video_url(video_id),
        youtube_video_id=video_id,
        sequence=sequence,
    ).model_dump()
    doc["_id"] = to_object_id(create_document(db, "lecture", doc))
    return doc


def create_lecture(db, client: Optional[YouTubeClient], course_id: str, title: Optional[str],
                   video_url: Optional[str], description: str = "", sequence: Optional[int] = None) -> Dict[str, Any]:
    if not title or not video_url:
        raise ValidationFailed("Lecture title and video URL are required")
    course = load_course(db, course_id)
    video_id = resolve_video_id(video_url)

    # Existence check is only possible with an API key.
    if client is not None:
        try:
            exists = client.video_exists(video_id)
        except RemoteUnavailable as e:
            logger.warning("Video lookup for %s failed: %s", video_id, e.message)
            raise ValidationFailed("YouTube video not found or unavailable.", detail=e.message)
        if not exists:
            raise ValidationFailed("YouTube video not found or unavailable.")

    if not sequence:
        sequence = len(course.get("lectures", [])) + 1

    lecture = insert_lecture(db, course_id, title, video_id, sequence, description, video_url)
    db["course"].update_one(
        {"_id": course["_id"]},
        {"$push": {"lectures": str(lecture["_id"])}, "$set": {"updated_at": now()}},
    )
    return lecture


def delete_lectures(db, course: Dict[str, Any]) -> int:
    ids = lecture_object_ids(course)
    if not ids:
        return 0
    return db["lecture"].delete_many({"_id": {"$in": ids}}).deleted_count


def delete_course(db, course_id: str) -> Dict[str, Any]:
    course = load_course(db, course_id)
    deleted = delete_lectures(db, course)
    db["course"].delete_one({"_id": course["_id"]})
    logger.info("Deleted course %s (%s) with %d lectures", course_id, course.get("title"), deleted)
    return {"id": course_id, "title": course.get("title"), "deleted_lectures_count": deleted}


def lectures_with_video_ids(db, course: Dict[str, Any]) -> List[Dict[str, Any]]:
    ids = lecture_object_ids(course)
    if not ids:
        return []
    return get_documents(db, "lecture", {"_id": {"$in": ids}})
