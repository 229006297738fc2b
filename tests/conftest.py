import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import hash_password
from database import create_document, ensure_indexes
from errors import RemoteUnavailable
from youtube import PlaylistEntry


class FakeYouTube:
    """In-memory stand-in for YouTubeClient."""

    def __init__(self):
        self.playlists = {}
        self.videos = set()
        self.lookup_error = None

    def add_playlist(self, playlist_id, items):
        # items: list of (video_id, title)
        self.playlists[playlist_id] = list(items)
        self.videos.update(v for v, _ in items if v)

    def video_exists(self, video_id):
        if self.lookup_error is not None:
            raise self.lookup_error
        return video_id in self.videos

    def iter_playlist_items(self, playlist_id):
        if playlist_id not in self.playlists:
            raise RemoteUnavailable("Playlist not found or is private", status_code=404)
        for i, (video_id, title) in enumerate(self.playlists[playlist_id], start=1):
            yield PlaylistEntry(position=i, video_id=video_id, title=title, description=f"about {title}")


@pytest.fixture
def db():
    database = mongomock.MongoClient()["lms_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def youtube():
    return FakeYouTube()


def make_course(db, title="Python 101", lectures=None, **extra):
    doc = {
        "title": title,
        "description": "Learn Python",
        "category": "Programming",
        "level": "beginner",
        "lectures": lectures or [],
        "is_published": True,
    }
    doc.update(extra)
    return create_document(db, "course", doc)


def make_user(db, email="student@example.com", role="student", password="secret123"):
    return create_document(db, "user", {
        "name": email.split("@")[0],
        "email": email,
        "password_hash": hash_password(password),
        "role": role,
        "photo_url": "",
        "profile": {},
    })


@pytest.fixture
def app_client(db, youtube, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    from main import app, get_db, get_youtube

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_youtube] = lambda: youtube
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def login(client, email, password="secret123"):
    resp = client.post("/api/v1/users/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def admin_headers(db, app_client):
    make_user(db, "admin@example.com", role="admin")
    return login(app_client, "admin@example.com")


@pytest.fixture
def student_headers(db, app_client):
    make_user(db, "student@example.com")
    return login(app_client, "student@example.com")
