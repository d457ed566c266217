from __future__ import annotations

import pytest
import requests

from livesync.errors import EmptyFeedError, FeedFetchError, FeedParseError
from livesync.models import ChannelDescriptor
from livesync.services.feed import FeedLoader, normalize_channels
from tests.livesync_helpers import FEED_URL, FakeResponse, FakeSession, feed_response


def test_normalize_accepts_bare_list_and_channels_object():
    entries = [{"name": "News", "url": "https://a.example/news.m3u8"}]

    bare = normalize_channels(entries)
    wrapped = normalize_channels({"channels": entries})

    assert bare.channels == wrapped.channels == [
        ChannelDescriptor(name="News", source_url="https://a.example/news.m3u8")
    ]
    assert bare.invalid == 0


def test_normalize_resolves_key_aliases():
    result = normalize_channels(
        [
            {"title": "Sports", "watchUrl": "https://www.youtube.com/@sports/live"},
            {"id": 42, "link": "https://b.example/live"},
            {"name": "Primary", "title": "ignored", "url": "https://c.example/a.m3u8", "link": "x"},
        ]
    )

    assert [(c.name, c.source_url) for c in result.channels] == [
        ("Sports", "https://www.youtube.com/@sports/live"),
        ("42", "https://b.example/live"),
        ("Primary", "https://c.example/a.m3u8"),
    ]


def test_normalize_drops_entries_without_url_and_counts_them():
    result = normalize_channels(
        [
            {"name": "NoUrl"},
            {"name": "Blank", "url": "   "},
            "not-an-object",
            {"name": "Kept", "url": "https://d.example/kept.m3u8"},
        ]
    )

    assert [c.name for c in result.channels] == ["Kept"]
    assert result.invalid == 3


def test_normalize_assigns_positional_placeholder_names():
    payload = [
        {"url": "https://e.example/one.m3u8"},
        {"name": "Named", "url": "https://e.example/two.m3u8"},
        {"url": "https://e.example/three.m3u8"},
    ]

    first = normalize_channels(payload)
    second = normalize_channels(payload)

    assert [c.name for c in first.channels] == ["channel_1", "Named", "channel_3"]
    assert first.channels == second.channels


def test_normalize_rejects_unexpected_shape():
    with pytest.raises(FeedParseError):
        normalize_channels({"items": []})
    with pytest.raises(FeedParseError):
        normalize_channels("channels")


def test_normalize_raises_when_nothing_usable_remains():
    with pytest.raises(EmptyFeedError):
        normalize_channels({"channels": []})
    with pytest.raises(EmptyFeedError):
        normalize_channels([{"name": "only-name"}])


def test_loader_fetches_and_normalizes():
    session = FakeSession(
        {("GET", FEED_URL): feed_response({"channels": [{"name": "A", "url": "https://a.example/a.m3u8"}]})}
    )

    result = FeedLoader(session, timeout=1.0).load(FEED_URL)

    assert [c.name for c in result.channels] == ["A"]
    assert session.calls == [("GET", FEED_URL)]


def test_loader_raises_on_non_success_status():
    session = FakeSession({("GET", FEED_URL): feed_response([], status_code=503)})

    with pytest.raises(FeedFetchError) as excinfo:
        FeedLoader(session).load(FEED_URL)

    assert excinfo.value.status_code == 503


def test_loader_wraps_transport_errors():
    session = FakeSession({("GET", FEED_URL): requests.ConnectionError("refused")})

    with pytest.raises(FeedFetchError) as excinfo:
        FeedLoader(session).load(FEED_URL)

    assert excinfo.value.status_code is None
    assert "refused" in str(excinfo.value)


def test_loader_rejects_malformed_json():
    session = FakeSession({("GET", FEED_URL): FakeResponse(FEED_URL, text="{not json")})

    with pytest.raises(FeedParseError):
        FeedLoader(session).load(FEED_URL)
