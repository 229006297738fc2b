import httpx
import pytest

from errors import InvalidReference, RemoteUnavailable
from youtube import YouTubeClient, canonical_video_url, resolve_playlist_id, resolve_video_id


@pytest.mark.parametrize("value", [
    "https://www.youtube.com/watch?v=abc12345678",
    "https://youtube.com/watch?v=abc12345678&t=42s",
    "https://www.youtube.com/watch?feature=share&v=abc12345678",
    "https://youtu.be/abc12345678",
    "https://youtu.be/abc12345678?si=xyz",
    "https://www.youtube.com/embed/abc12345678",
    "https://www.youtube.com/shorts/abc12345678",
    "abc12345678",
    "  abc12345678 ",
])
def test_video_reference_forms_resolve_to_same_id(value):
    assert resolve_video_id(value) == "abc12345678"


@pytest.mark.parametrize("value", [
    "",
    None,
    "abc",
    "https://vimeo.com/12345",
    "not a video id at all",
    "https://www.youtube.com/watch?v=abc12345678EXTRA",
    "https://youtu.be/abc12345678xyz",
    "https://www.youtube.com/embed/abc12345678-",
])
def test_invalid_video_reference(value):
    with pytest.raises(InvalidReference):
        resolve_video_id(value)


def test_playlist_reference_forms():
    assert resolve_playlist_id("PLabc_12-x") == "PLabc_12-x"
    assert resolve_playlist_id("https://www.youtube.com/playlist?list=PLabc_12-x") == "PLabc_12-x"
    assert resolve_playlist_id("https://www.youtube.com/watch?v=abc12345678&list=PLxyz99") == "PLxyz99"
    assert resolve_playlist_id("youtube.com/playlist?list=PLxyz99") == "PLxyz99"


@pytest.mark.parametrize("value", ["PL1", "bad id!", "", "https://www.youtube.com/watch?v=abc12345678"])
def test_invalid_playlist_reference(value):
    with pytest.raises(InvalidReference):
        resolve_playlist_id(value)


def test_canonical_video_url():
    assert canonical_video_url("abc12345678") == "https://www.youtube.com/watch?v=abc12345678"


def _item(video_id, title):
    return {"snippet": {"title": title, "description": "", "resourceId": {"videoId": video_id}}}


def test_playlist_items_follow_page_tokens():
    seen_tokens = []

    def handler(request):
        assert request.url.params["key"] == "k"
        assert request.url.params["playlistId"] == "PLtest"
        token = request.url.params.get("pageToken")
        seen_tokens.append(token)
        if token is None:
            return httpx.Response(200, json={"items": [_item("vid00000001", "One"), _item("vid00000002", "Two")],
                                             "nextPageToken": "p2"})
        if token == "p2":
            return httpx.Response(200, json={"items": [_item("vid00000003", "Three")], "nextPageToken": "p3"})
        return httpx.Response(200, json={"items": [_item("vid00000004", "Four")]})

    client = YouTubeClient("k", transport=httpx.MockTransport(handler))
    entries = list(client.iter_playlist_items("PLtest"))

    assert seen_tokens == [None, "p2", "p3"]
    assert [e.position for e in entries] == [1, 2, 3, 4]
    assert [e.title for e in entries] == ["One", "Two", "Three", "Four"]
    assert entries[2].video_url == "https://www.youtube.com/watch?v=vid00000003"


@pytest.mark.parametrize("status,expected", [(403, 403), (404, 404), (500, 502)])
def test_http_errors_map_to_remote_unavailable(status, expected):
    client = YouTubeClient("k", transport=httpx.MockTransport(lambda r: httpx.Response(status, json={})))
    with pytest.raises(RemoteUnavailable) as exc:
        list(client.iter_playlist_items("PLtest"))
    assert exc.value.status_code == expected


def test_timeout_maps_to_remote_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = YouTubeClient("k", transport=httpx.MockTransport(handler))
    with pytest.raises(RemoteUnavailable) as exc:
        client.video_exists("abc12345678")
    assert exc.value.status_code == 504


def test_video_exists():
    def handler(request):
        found = request.url.params["id"] == "abc12345678"
        return httpx.Response(200, json={"items": [{"id": "abc12345678"}] if found else []})

    client = YouTubeClient("k", transport=httpx.MockTransport(handler))
    assert client.video_exists("abc12345678")
    assert not client.video_exists("zzz12345678")
