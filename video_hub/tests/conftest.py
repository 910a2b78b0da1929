import pytest
from starlette.requests import Request

import video_hub.main as main_module
from video_hub.app.services.cache import InMemoryChannelVideoCache
from video_hub.app.services.channels import ChannelAggregator
from video_hub.app.services.errors import ChannelNotFound, VideoNotFound
from video_hub.app.services.models import ChannelInfo, PredefinedChannel, VideoPage, VideoSummary
from video_hub.app.services.provider import VideoProvider


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(VideoProvider):
    """Scripted provider: records every call, serves canned data, raises queued failures."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.search_results: list[VideoSummary] = []
        self.channels: dict[str, list[VideoSummary]] = {}
        self.infos: dict[str, ChannelInfo] = {}
        self.handles: dict[tuple[str, str], str] = {}
        self.videos: dict[str, VideoSummary] = {}
        self.next_page_token: str | None = "NEXT_TOKEN"
        self.failures: dict[str, Exception] = {}

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    def _maybe_fail(self, op: str) -> None:
        exc = self.failures.get(op)
        if exc is not None:
            raise exc

    def search(self, query, limit, page_token=None):
        self.calls.append(("search", query, limit, page_token))
        self._maybe_fail("search")
        return VideoPage(videos=tuple(self.search_results[:limit]), next_page_token=self.next_page_token)

    def video_details(self, video_id):
        self.calls.append(("video_details", video_id))
        self._maybe_fail("video_details")
        if video_id not in self.videos:
            raise VideoNotFound(f"video not found: {video_id}")
        return self.videos[video_id]

    def channel_videos(self, channel_id, limit, page_token=None):
        self.calls.append(("channel_videos", channel_id, limit, page_token))
        self._maybe_fail("channel_videos")
        if channel_id not in self.channels:
            raise ChannelNotFound(f"channel not found: {channel_id}")
        return VideoPage(
            videos=tuple(self.channels[channel_id][:limit]),
            next_page_token=self.next_page_token,
        )

    def channel_info(self, channel_id):
        self.calls.append(("channel_info", channel_id))
        self._maybe_fail("channel_info")
        if channel_id not in self.infos:
            raise ChannelNotFound(f"channel not found: {channel_id}")
        return self.infos[channel_id]

    def resolve_channel(self, hint_type, value):
        self.calls.append(("resolve_channel", hint_type, value))
        self._maybe_fail("resolve_channel")
        return self.handles.get((hint_type, value.lower()))


def build_videos(prefix: str, count: int, channel_id: str = "UC123") -> list[VideoSummary]:
    return [
        VideoSummary(
            id=f"{prefix}{index:02d}",
            title=f"{prefix} video {index}",
            channel_id=channel_id,
            channel_title=f"Channel {channel_id}",
            published_at="2025-01-01T00:00:00Z",
            thumbnail=f"https://img/{prefix}{index:02d}.jpg",
        )
        for index in range(count)
    ]


FIXTURE_CATALOGUE = {
    "alpha": PredefinedChannel(key="alpha", id="UCalpha", name="Alpha Channel", handle="@alpha"),
    "beta": PredefinedChannel(key="beta", id="UCbeta", name="Beta Channel", handle="@beta"),
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_provider():
    provider = FakeProvider()
    provider.channels["UC123"] = build_videos("c", 30, "UC123")
    provider.channels["UCalpha"] = build_videos("alpha", 25, "UCalpha")
    provider.channels["UCbeta"] = build_videos("beta", 25, "UCbeta")
    provider.infos["UC123"] = ChannelInfo(id="UC123", title="Channel 123", description="Test channel")
    provider.handles[("handle", "channel123")] = "UC123"
    provider.search_results = build_videos("s", 20, "UCsearch")
    return provider


@pytest.fixture
def cache_store(clock):
    return InMemoryChannelVideoCache(ttl_seconds=3600, clock=clock)


@pytest.fixture
def aggregator(fake_provider, cache_store):
    return ChannelAggregator(fake_provider, cache_store, FIXTURE_CATALOGUE)


@pytest.fixture
def app_services(monkeypatch, aggregator):
    monkeypatch.setattr(main_module, "AGGREGATOR", aggregator)
    main_module.API_RATE_LIMIT_BUCKETS.clear()
    yield aggregator
    main_module.API_RATE_LIMIT_BUCKETS.clear()


@pytest.fixture
def make_request():
    def _make(ip: str = "127.0.0.1") -> Request:
        return Request(
            {
                "type": "http",
                "method": "GET",
                "path": "/",
                "headers": [],
                "client": (ip, 8000),
                "query_string": b"",
                "server": ("test", 80),
                "scheme": "http",
                "http_version": "1.1",
            }
        )

    return _make


@pytest.fixture
def video_factory():
    return build_videos
