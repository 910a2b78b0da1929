from collections import deque

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

import video_hub.main as main_module
from video_hub.app.services.errors import ChannelNotFound, InvalidInput, InvalidReference, ProviderError, QuotaExceeded
from video_hub.app.services.models import ChannelInfo, PredefinedChannel


@pytest.fixture
def client(app_services):
    return TestClient(main_module.app)


def test_health():
    assert main_module.health() == {"ok": True}


def test_search_clamps_to_nine(app_services, fake_provider, make_request):
    payload = main_module.search_videos(
        main_module.SearchRequest(query="golang tutorials", max_results=15),
        make_request(),
    )

    assert fake_provider.calls == [("search", "golang tutorials", 9, None)]
    assert len(payload["videos"]) <= 9
    assert payload["total_results"] == len(payload["videos"])
    assert payload["next_page_token"] == "NEXT_TOKEN"


def test_search_forwards_page_token(app_services, fake_provider, make_request):
    main_module.search_videos(
        main_module.SearchRequest(query="rust", max_results=3, page_token="CAUQAA"),
        make_request(),
    )
    assert fake_provider.calls == [("search", "rust", 3, "CAUQAA")]


def test_search_requires_query(app_services, fake_provider, make_request):
    with pytest.raises(InvalidInput):
        main_module.search_videos(main_module.SearchRequest(query="   "), make_request())
    assert fake_provider.calls == []


def test_video_details_accepts_urls(app_services, fake_provider, make_request, video_factory):
    video = video_factory("v", 1)[0].model_copy(update={"id": "dQw4w9WgXcQ"})
    fake_provider.videos["dQw4w9WgXcQ"] = video

    payload = main_module.video_details(
        main_module.VideoDetailsRequest(video_id="https://youtu.be/dQw4w9WgXcQ"),
        make_request(),
    )
    assert payload["id"] == "dQw4w9WgXcQ"
    assert fake_provider.calls == [("video_details", "dQw4w9WgXcQ")]


def test_video_details_rejects_garbage(app_services, make_request):
    with pytest.raises(InvalidReference):
        main_module.video_details(main_module.VideoDetailsRequest(video_id="nope"), make_request())


def test_channel_videos_second_call_is_cached(app_services, fake_provider, make_request):
    body = main_module.ChannelVideosRequest(channel_id="UC123", max_results=10)

    first = main_module.channel_videos(body, make_request())
    second = main_module.channel_videos(body, make_request())

    assert fake_provider.count("channel_videos") == 1
    assert first["next_page_token"] == "NEXT_TOKEN"
    assert second["next_page_token"] is None
    assert second["videos"] == first["videos"]
    assert second["total_results"] == 10


def test_channel_videos_defaults_to_ten(app_services, fake_provider, make_request):
    payload = main_module.channel_videos(main_module.ChannelVideosRequest(channel_id="UC123"), make_request())
    assert len(payload["videos"]) == 10
    assert fake_provider.calls == [("channel_videos", "UC123", 10, None)]


@pytest.mark.parametrize("max_results", [0, -1, 51])
def test_channel_videos_rejects_out_of_range_limit(app_services, fake_provider, make_request, max_results):
    with pytest.raises(InvalidInput):
        main_module.channel_videos(
            main_module.ChannelVideosRequest(channel_id="UC123", max_results=max_results),
            make_request(),
        )
    assert fake_provider.calls == []


def test_channel_videos_unknown_channel_is_not_cached(app_services, make_request):
    with pytest.raises(ChannelNotFound):
        main_module.channel_videos(main_module.ChannelVideosRequest(channel_id="UC_unknown"), make_request())
    assert app_services.cache.get("UC_unknown", 10) is None


def test_channel_from_url_returns_channel_and_videos(app_services, fake_provider, make_request):
    payload = main_module.channel_from_url(
        main_module.ChannelURLRequest(channel_url="https://www.youtube.com/@channel123"),
        make_request(),
    )

    assert payload["channel"]["id"] == "UC123"
    assert payload["channel"]["title"] == "Channel 123"
    assert payload["count"] == 20
    assert len(payload["videos"]) == 20
    assert fake_provider.calls[0] == ("resolve_channel", "handle", "channel123")


def test_channel_from_url_caps_limit(app_services, fake_provider, make_request):
    main_module.channel_from_url(
        main_module.ChannelURLRequest(channel_url="@channel123", max_results=500),
        make_request(),
    )
    assert ("channel_videos", "UC123", 50, None) in fake_provider.calls


def test_channel_from_url_unresolvable(app_services, make_request):
    with pytest.raises(ChannelNotFound):
        main_module.channel_from_url(
            main_module.ChannelURLRequest(channel_url="https://www.youtube.com/@nobody-here"),
            make_request(),
        )


def test_channel_endpoint_fetches_info_first(app_services, fake_provider, make_request):
    payload = main_module.channel_with_info(main_module.ChannelRequest(channel_id="UC123", max_results=5), make_request())

    assert [call[0] for call in fake_provider.calls] == ["channel_info", "channel_videos"]
    assert payload["channel"]["id"] == "UC123"
    assert payload["count"] == 5


def test_trending_builds_query_and_clamps(app_services, fake_provider, make_request):
    payload = main_module.trending(make_request(), category="gaming", max_results="25")

    assert fake_provider.calls == [("search", "trending gaming videos", 9, None)]
    assert len(payload["videos"]) == 9


def test_trending_ignores_unparsable_limit(app_services, fake_provider, make_request):
    main_module.trending(make_request(), category=None, max_results="lots")
    assert fake_provider.calls == [("search", "trending videos", 9, None)]


def test_predefined_channels_needs_no_channel_id(app_services, fake_provider, make_request):
    payload = main_module.predefined_channels(make_request(), max_results="3")

    assert payload["channels"] == ["Alpha Channel", "Beta Channel"]
    assert payload["count"] == 6
    assert [video["channel_id"] for video in payload["videos"]] == ["UCalpha"] * 3 + ["UCbeta"] * 3


def test_predefined_channels_out_of_range_falls_back(app_services, fake_provider, make_request):
    payload = main_module.predefined_channels(make_request(), max_results="99")
    assert payload["count"] == 20
    assert all(call[2] == 10 for call in fake_provider.calls)


def test_channel_catalogue(app_services, make_request):
    payload = main_module.channel_catalogue(make_request())
    assert [channel["key"] for channel in payload["channels"]] == ["alpha", "beta"]


def test_named_channel_videos(app_services, fake_provider, make_request):
    payload = main_module.named_channel_videos(make_request(), "Beta", max_results=None)

    assert payload["channel"] == "Beta Channel"
    assert payload["channel_id"] == "UCbeta"
    assert payload["count"] == 20


def test_named_channel_unknown_key(app_services, make_request):
    with pytest.raises(ChannelNotFound):
        main_module.named_channel_videos(make_request(), "gamma", max_results=None)


def test_fireship_and_network_chuck_aliases(app_services, fake_provider, make_request):
    app_services.catalogue["fireship"] = PredefinedChannel(key="fireship", id="UCalpha", name="Fireship")
    app_services.catalogue["network-chuck"] = PredefinedChannel(key="network-chuck", id="UCbeta", name="NetworkChuck")

    fireship = main_module.fireship_videos(make_request(), max_results="7")
    chuck = main_module.network_chuck_videos(make_request(), max_results="0")

    assert fireship["channel"] == "Fireship"
    assert fireship["count"] == 7
    assert chuck["channel"] == "NetworkChuck"
    assert chuck["count"] == 20


def test_rate_limit_per_client(app_services, monkeypatch, make_request):
    monkeypatch.setattr(main_module.settings, "API_RATE_LIMIT_MAX_REQUESTS", 2)

    main_module.trending(make_request("10.0.0.1"), category=None, max_results=None)
    main_module.trending(make_request("10.0.0.1"), category=None, max_results=None)
    with pytest.raises(HTTPException) as exc_info:
        main_module.trending(make_request("10.0.0.1"), category=None, max_results=None)
    assert exc_info.value.status_code == 429

    main_module.trending(make_request("10.0.0.2"), category=None, max_results=None)


def test_error_body_for_provider_failure(client, fake_provider):
    fake_provider.failures["search"] = ProviderError("HTTP 500: backendError")

    response = client.post("/api/v1/youtube/search", json={"query": "python"})

    assert response.status_code == 500
    assert response.json() == {"error": "YouTube request failed", "details": "HTTP 500: backendError"}


def test_quota_exhaustion_is_reported(client, fake_provider):
    fake_provider.failures["search"] = QuotaExceeded("HTTP 403: quota")

    response = client.get("/api/v1/youtube/trending")

    assert response.status_code == 500
    assert response.json()["error"] == "YouTube API quota exceeded"


def test_invalid_limit_over_http(client):
    response = client.post("/api/v1/youtube/channel-videos", json={"channel_id": "UC123", "max_results": 0})

    assert response.status_code == 400
    assert set(response.json()) == {"error", "details"}


def test_unknown_channel_over_http(client):
    response = client.post("/api/v1/youtube/channel-videos", json={"channel_id": "UC_unknown"})

    assert response.status_code == 404
    assert response.json()["error"] == "Channel not found"


def test_malformed_body_is_bad_request(client, fake_provider):
    response = client.post("/api/v1/youtube/search", json={"max_results": 3})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request body"
    assert isinstance(body["details"], list)
    assert fake_provider.calls == []


def test_rate_limit_over_http(client, monkeypatch):
    monkeypatch.setattr(main_module.settings, "API_RATE_LIMIT_MAX_REQUESTS", 1)

    assert client.get("/api/v1/youtube/channels").status_code == 200
    response = client.get("/api/v1/youtube/channels")

    assert response.status_code == 429
    assert response.json() == {
        "error": "Too Many Requests",
        "details": "Too many requests. Please wait a minute and try again.",
    }


def test_unknown_route_uses_error_body(client):
    response = client.get("/api/v1/youtube/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "details": "Not Found"}


def test_idle_rate_limit_buckets_are_dropped(app_services, make_request):
    main_module.API_RATE_LIMIT_BUCKETS["trending:10.9.9.9"] = deque([0.0])
    main_module.API_RATE_LIMIT_BUCKETS["trending:10.9.9.8"] = deque()

    main_module.trending(make_request("10.0.0.1"), category=None, max_results=None)

    assert set(main_module.API_RATE_LIMIT_BUCKETS) == {"trending:10.0.0.1"}


def test_malformed_channel_url_is_bad_request(client, fake_provider):
    response = client.post("/api/v1/youtube/channel-from-url", json={"channel_url": "https://[youtube.com/@x"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid reference"
    assert fake_provider.calls == []


def test_malformed_video_url_is_bad_request(client):
    response = client.post("/api/v1/youtube/video-details", json={"video_id": "https://[youtu.be/abc"})

    assert response.status_code == 400
    assert set(response.json()) == {"error", "details"}


def test_channel_endpoint_over_http(client, fake_provider):
    fake_provider.infos["UCalpha"] = ChannelInfo(id="UCalpha", title="Alpha Channel")

    response = client.post("/api/v1/youtube/channel", json={"channel_id": "UCalpha"})

    assert response.status_code == 200
    body = response.json()
    assert body["channel"]["title"] == "Alpha Channel"
    assert body["count"] == 20
