"""
Import the videos of a YouTube playlist as lectures of a course.

The playlist is fetched completely before the course is touched. Lectures are
then created one by one; a failure on one item is recorded in the result and
the remaining items are still processed. The course document is saved once at
the end.
"""
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from database import now
from errors import ConfigurationError, RemoteUnavailable
from lectures import delete_lectures, insert_lecture, lectures_with_video_ids, load_course
from locks import course_import_lock
from youtube import PlaylistEntry, YouTubeClient, resolve_playlist_id

logger = logging.getLogger(__name__)


@dataclass
class ItemError:
    video_index: int
    title: str
    error: str


@dataclass
class ImportResult:
    course_id: str
    course_title: str
    playlist_id: str
    imported_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    total_videos_in_playlist: int = 0
    lectures: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[ItemError] = field(default_factory=list)

    @property
    def message(self) -> str:
        msg = f"Successfully imported {self.imported_count} lectures from playlist"
        if self.errors:
            msg += f" ({len(self.errors)} errors occurred)"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["message"] = self.message
        return data


def import_playlist(db, client: Optional[YouTubeClient], course_id: str, playlist_reference: str,
                    replace_existing: bool = False) -> ImportResult:
    playlist_id = resolve_playlist_id(playlist_reference)
    course = load_course(db, course_id)
    if client is None:
        raise ConfigurationError("YouTube API key not configured")

    with course_import_lock(db, course_id):
        # re-read under the lock, another import may have just finished
        course = load_course(db, course_id)
        logger.info("Importing playlist %s for course %s", playlist_id, course.get("title"))

        entries = list(client.iter_playlist_items(playlist_id))
        if not entries:
            raise RemoteUnavailable("No videos found in playlist or playlist is private/unavailable", status_code=404)

        lecture_ids: List[str] = list(course.get("lectures", []))
        known_video_ids = set()
        if replace_existing:
            removed = delete_lectures(db, course)
            lecture_ids = []
            logger.info("Removed %d existing lectures of course %s for replacement", removed, course_id)
        else:
            known_video_ids.update(
                lec.get("youtube_video_id") for lec in lectures_with_video_ids(db, course) if lec.get("youtube_video_id")
            )

        result = ImportResult(
            course_id=course_id,
            course_title=course.get("title", ""),
            playlist_id=playlist_id,
            total_videos_in_playlist=len(entries),
        )
        next_sequence = len(lecture_ids) + 1

        for entry in entries:
            if entry.video_id and entry.video_id in known_video_ids:
                logger.debug("Skipping duplicate video %s (%s)", entry.video_id, entry.title)
                result.skipped_count += 1
                continue
            try:
                lecture = _create_from_entry(db, course_id, entry, next_sequence)
            except Exception as e:
                logger.exception("Error creating lecture for video %d of playlist %s", entry.position, playlist_id)
                result.errors.append(ItemError(video_index=entry.position, title=entry.title or "Unknown", error=str(e)))
                continue
            known_video_ids.add(entry.video_id)
            lecture_ids.append(str(lecture["_id"]))
            next_sequence += 1
            result.lectures.append({
                "id": str(lecture["_id"]),
                "title": lecture["title"],
                "youtube_video_id": lecture["youtube_video_id"],
                "sequence": lecture["sequence"],
            })

        db["course"].update_one(
            {"_id": course["_id"]},
            {"$set": {"lectures": lecture_ids, "playlist_id": playlist_id, "updated_at": now()}},
        )

    result.imported_count = len(result.lectures)
    result.error_count = len(result.errors)
    logger.info(
        "Playlist %s imported into course %s: %d imported, %d skipped, %d errors",
        playlist_id, course_id, result.imported_count, result.skipped_count, result.error_count,
    )
    return result


def _create_from_entry(db, course_id: str, entry: PlaylistEntry, sequence: int) -> Dict[str, Any]:
    if not entry.video_id:
        raise ValueError("Playlist item has no video id")
    return insert_lecture(
        db,
        course_id,
        title=entry.title or entry.video_id,
        video_id=entry.video_id,
        sequence=sequence,
        description=entry.description,
        video_url=entry.video_url,
    )
