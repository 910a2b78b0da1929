from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VideoSummary(BaseModel):
    """Point-in-time snapshot of one provider video."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    channel_id: str | None = None
    channel_title: str | None = None
    published_at: str | None = None
    thumbnail: str | None = None
    duration: int | None = None
    view_count: int | None = None
    like_count: int | None = None


class VideoPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    videos: tuple[VideoSummary, ...] = ()
    next_page_token: str | None = None


class ChannelInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    thumbnail: str | None = None
    custom_url: str | None = None
    subscriber_count: int | None = None
    video_count: int | None = None


class PredefinedChannel(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    id: str
    name: str
    handle: str | None = None


class CacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    channel_id: str
    limit: int
    videos: tuple[VideoSummary, ...] = Field(default_factory=tuple)
    fetched_at: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.fetched_at < ttl_seconds

    def to_record(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "limit": self.limit,
            "fetched_at": self.fetched_at,
            "videos": [video.model_dump() for video in self.videos],
        }
