"""
YouTube helpers: resolving video/playlist references and talking to the
YouTube Data API v3.
"""
import os
import re
import logging
from dataclasses import dataclass
from typing import Dict, Any, Iterator, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from errors import InvalidReference, RemoteUnavailable

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://www.googleapis.com/youtube/v3"
PAGE_SIZE = 50

# Checked in order, first match wins.
VIDEO_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:[^#\s]*&)?v=)([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"(?:youtu\.be/)([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"(?:youtube\.com/embed/)([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"(?:youtube\.com/shorts/)([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"^([A-Za-z0-9_-]{11})$"),
]
PLAYLIST_ID_RE = re.compile(r"^[A-Za-z0-9_-]{5,}$")


def resolve_video_id(value: Optional[str]) -> str:
    text = (value or "").strip()
    for pattern in VIDEO_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    raise InvalidReference(
        "Invalid YouTube URL. Please provide a valid YouTube video URL or video ID.",
        detail=f"unrecognised video reference: {text!r}",
    )


def resolve_playlist_id(value: Optional[str]) -> str:
    text = (value or "").strip()
    if "://" in text or text.startswith(("www.", "youtube.com", "m.youtube.com")):
        parsed = urlparse(text if "://" in text else f"https://{text}")
        candidates = parse_qs(parsed.query).get("list", [])
        if candidates and PLAYLIST_ID_RE.match(candidates[0]):
            return candidates[0]
    elif PLAYLIST_ID_RE.match(text):
        return text
    raise InvalidReference("Invalid playlist ID format", detail=f"unrecognised playlist reference: {text!r}")


def canonical_video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


@dataclass
class PlaylistEntry:
    position: int
    video_id: Optional[str]
    title: str
    description: str = ""

    @property
    def video_url(self) -> Optional[str]:
        return canonical_video_url(self.video_id) if self.video_id else None


class YouTubeClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        q = dict(params)
        q["key"] = self.api_key
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as cli:
                r = cli.get(f"{self.base_url}{path}", params=q)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 403:
                raise RemoteUnavailable("YouTube API quota exceeded or access denied", status_code=403, detail=str(e))
            if status == 404:
                raise RemoteUnavailable("Playlist not found or is private", status_code=404, detail=str(e))
            raise RemoteUnavailable("YouTube API request failed", status_code=502, detail=str(e))
        except httpx.TimeoutException as e:
            raise RemoteUnavailable("YouTube API request timed out", status_code=504, detail=str(e))
        except httpx.HTTPError as e:
            raise RemoteUnavailable("YouTube API request failed", status_code=502, detail=str(e))

    def video_exists(self, video_id: str) -> bool:
        data = self._get("/videos", {"part": "snippet", "id": video_id})
        return len(data.get("items") or []) > 0

    def iter_playlist_items(self, playlist_id: str) -> Iterator[PlaylistEntry]:
        position = 1
        page_token = None
        while True:
            params = {"part": "snippet", "maxResults": PAGE_SIZE, "playlistId": playlist_id}
            if page_token:
                params["pageToken"] = page_token
            data = self._get("/playlistItems", params)
            for item in data.get("items") or []:
                snippet = item.get("snippet") or {}
                yield PlaylistEntry(
                    position=position,
                    video_id=(snippet.get("resourceId") or {}).get("videoId"),
                    title=snippet.get("title") or "",
                    description=snippet.get("description") or "",
                )
                position += 1
            page_token = data.get("nextPageToken")
            if not page_token:
                break


def client_from_env() -> Optional[YouTubeClient]:
    api_key = os.getenv("YOUTUBE_API_KEY")
    if not api_key:
        return None
    return YouTubeClient(
        api_key,
        base_url=os.getenv("YOUTUBE_API_BASE", DEFAULT_API_BASE),
        timeout=float(os.getenv("YOUTUBE_TIMEOUT", "15")),
    )
