import html
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import requests

from video_hub.app.services.errors import (
    ChannelNotFound,
    NotFound,
    ProviderError,
    QuotaExceeded,
    VideoNotFound,
)
from video_hub.app.services.models import ChannelInfo, VideoPage, VideoSummary

logger = logging.getLogger(__name__)

YOUTUBE_VIDEOS_LIST = "https://www.googleapis.com/youtube/v3/videos"
YOUTUBE_SEARCH_LIST = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_CHANNELS_LIST = "https://www.googleapis.com/youtube/v3/channels"
YOUTUBE_PLAYLIST_ITEMS_LIST = "https://www.googleapis.com/youtube/v3/playlistItems"

API_PAGE_MAX = 50
UNAVAILABLE_TITLES = {"Private video", "Deleted video"}
DURATION_RE = re.compile(r"P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


class VideoProvider(ABC):
    """Operations against the external video platform. One upstream call per method call."""

    @abstractmethod
    def search(self, query: str, limit: int, page_token: str | None = None) -> VideoPage:
        ...

    @abstractmethod
    def video_details(self, video_id: str) -> VideoSummary:
        ...

    @abstractmethod
    def channel_videos(self, channel_id: str, limit: int, page_token: str | None = None) -> VideoPage:
        ...

    @abstractmethod
    def channel_info(self, channel_id: str) -> ChannelInfo:
        ...

    @abstractmethod
    def resolve_channel(self, hint_type: str, value: str) -> str | None:
        ...


# ---------------------------
# Payload helpers
# ---------------------------

def iso8601_duration_to_seconds(duration: str) -> int | None:
    if not duration:
        return None
    match = DURATION_RE.fullmatch(duration)
    if not match:
        return None
    days, hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def best_thumbnail_url(thumbnails: dict) -> str | None:
    for key in ("maxres", "standard", "high", "medium", "default"):
        t = thumbnails.get(key)
        if t and "url" in t:
            return t["url"]
    return None


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _upstream_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = (payload.get("error") or {}).get("message")
        if isinstance(message, str) and message.strip():
            return f"HTTP {response.status_code}: {message.strip()}"
    return f"HTTP {response.status_code}"


def video_from_snippet(video_id: str, snippet: dict, statistics: dict | None = None, details: dict | None = None) -> VideoSummary:
    statistics = statistics or {}
    details = details or {}
    return VideoSummary(
        id=video_id,
        title=html.unescape(snippet.get("title") or ""),
        description=html.unescape(snippet.get("description") or ""),
        channel_id=snippet.get("channelId"),
        channel_title=snippet.get("channelTitle"),
        published_at=details.get("videoPublishedAt") or snippet.get("publishedAt"),
        thumbnail=best_thumbnail_url(snippet.get("thumbnails") or {}),
        duration=iso8601_duration_to_seconds(details.get("duration") or ""),
        view_count=_optional_int(statistics.get("viewCount")),
        like_count=_optional_int(statistics.get("likeCount")),
    )


def uploads_playlist_id(channel_id: str) -> str | None:
    # Every channel's uploads playlist shares its id suffix.
    if not channel_id.startswith("UC") or len(channel_id) <= 2:
        return None
    return "UU" + channel_id[2:]


# ---------------------------
# YouTube Data API binding
# ---------------------------

class YouTubeDataProvider(VideoProvider):
    def __init__(self, api_key: str | None, timeout: int = 15):
        self.api_key = api_key
        self.timeout = timeout

    def _get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise ProviderError("YOUTUBE_API_KEY is not configured")

        try:
            response = requests.get(url, params={**params, "key": self.api_key}, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("YouTube request to %s failed: %s", url, exc)
            raise ProviderError(f"YouTube is temporarily unavailable: {exc}") from exc

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as exc:
                raise ProviderError("YouTube returned a malformed response") from exc

        message = _upstream_message(response)
        lowered = response.text.lower()
        if response.status_code in {403, 429} and (
            "quotaexceeded" in lowered or "quota exceeded" in lowered or "youtube.quota" in lowered
        ):
            logger.warning("YouTube API quota exceeded (%s)", url)
            raise QuotaExceeded(message)

        if response.status_code == 404:
            raise NotFound(message)

        logger.warning("YouTube request to %s returned %s", url, message)
        raise ProviderError(message)

    def search(self, query: str, limit: int, page_token: str | None = None) -> VideoPage:
        params: dict[str, Any] = {
            "part": "snippet",
            "type": "video",
            "q": query,
            "maxResults": max(1, min(limit, API_PAGE_MAX)),
        }
        if page_token:
            params["pageToken"] = page_token

        payload = self._get(YOUTUBE_SEARCH_LIST, params)
        videos = []
        for item in payload.get("items", []):
            video_id = (item.get("id") or {}).get("videoId")
            if not video_id:
                continue
            videos.append(video_from_snippet(video_id, item.get("snippet") or {}))
        return VideoPage(videos=tuple(videos), next_page_token=payload.get("nextPageToken"))

    def video_details(self, video_id: str) -> VideoSummary:
        payload = self._get(
            YOUTUBE_VIDEOS_LIST,
            {
                "part": "snippet,statistics,contentDetails",
                "id": video_id,
            },
        )
        items = payload.get("items", [])
        if not items:
            raise VideoNotFound(f"video not found: {video_id}")
        item = items[0]
        return video_from_snippet(
            item.get("id") or video_id,
            item.get("snippet") or {},
            item.get("statistics") or {},
            item.get("contentDetails") or {},
        )

    def channel_videos(self, channel_id: str, limit: int, page_token: str | None = None) -> VideoPage:
        playlist_id = uploads_playlist_id(channel_id)
        if playlist_id is None:
            raise ChannelNotFound(f"channel not found: {channel_id}")

        params: dict[str, Any] = {
            "part": "snippet,contentDetails",
            "playlistId": playlist_id,
            "maxResults": max(1, min(limit, API_PAGE_MAX)),
        }
        if page_token:
            params["pageToken"] = page_token

        try:
            payload = self._get(YOUTUBE_PLAYLIST_ITEMS_LIST, params)
        except NotFound as exc:
            raise ChannelNotFound(f"channel not found: {channel_id}") from exc

        videos = []
        for item in payload.get("items", []):
            snippet = item.get("snippet") or {}
            details = item.get("contentDetails") or {}
            video_id = details.get("videoId") or (snippet.get("resourceId") or {}).get("videoId")
            if not video_id or snippet.get("title") in UNAVAILABLE_TITLES:
                continue
            videos.append(video_from_snippet(video_id, snippet, details=details))
        return VideoPage(videos=tuple(videos), next_page_token=payload.get("nextPageToken"))

    def channel_info(self, channel_id: str) -> ChannelInfo:
        payload = self._get(
            YOUTUBE_CHANNELS_LIST,
            {
                "part": "snippet,statistics",
                "id": channel_id,
            },
        )
        items = payload.get("items", [])
        if not items:
            raise ChannelNotFound(f"channel not found: {channel_id}")
        item = items[0]
        snippet = item.get("snippet") or {}
        statistics = item.get("statistics") or {}
        return ChannelInfo(
            id=item.get("id") or channel_id,
            title=html.unescape(snippet.get("title") or ""),
            description=html.unescape(snippet.get("description") or ""),
            thumbnail=best_thumbnail_url(snippet.get("thumbnails") or {}),
            custom_url=snippet.get("customUrl"),
            subscriber_count=None if statistics.get("hiddenSubscriberCount") else _optional_int(statistics.get("subscriberCount")),
            video_count=_optional_int(statistics.get("videoCount")),
        )

    def resolve_channel(self, hint_type: str, value: str) -> str | None:
        if hint_type == "handle":
            payload = self._get(
                YOUTUBE_CHANNELS_LIST,
                {"part": "id", "forHandle": f"@{value}", "maxResults": 1},
            )
            items = payload.get("items", [])
            return items[0].get("id") if items else None

        if hint_type == "username":
            payload = self._get(
                YOUTUBE_CHANNELS_LIST,
                {"part": "id", "forUsername": value, "maxResults": 1},
            )
            items = payload.get("items", [])
            return items[0].get("id") if items else None

        if hint_type == "custom":
            # Legacy /c/ names have no direct lookup; take the top channel search hit.
            payload = self._get(
                YOUTUBE_SEARCH_LIST,
                {"part": "snippet", "type": "channel", "q": value, "maxResults": 1},
            )
            items = payload.get("items", [])
            if not items:
                return None
            return (items[0].get("id") or {}).get("channelId")

        return None
