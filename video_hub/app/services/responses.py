from collections.abc import Iterable, Mapping
from typing import Any

from video_hub.app.services.models import ChannelInfo, PredefinedChannel, VideoPage, VideoSummary


def video_item(video: VideoSummary) -> dict[str, Any]:
    return video.model_dump()


def video_items(videos: Iterable[VideoSummary]) -> list[dict[str, Any]]:
    return [video_item(video) for video in videos]


def video_list_response(page: VideoPage) -> dict[str, Any]:
    items = video_items(page.videos)
    return {
        "videos": items,
        "next_page_token": page.next_page_token,
        "total_results": len(items),
    }


def channel_listing_response(info: ChannelInfo, page: VideoPage) -> dict[str, Any]:
    items = video_items(page.videos)
    return {
        "channel": info.model_dump(),
        "videos": items,
        "count": len(items),
        "next_page_token": page.next_page_token,
    }


def named_channel_response(channel: PredefinedChannel, page: VideoPage) -> dict[str, Any]:
    items = video_items(page.videos)
    return {
        "channel": channel.name,
        "channel_id": channel.id,
        "videos": items,
        "count": len(items),
    }


def predefined_videos_response(channels: Iterable[PredefinedChannel], videos: Iterable[VideoSummary]) -> dict[str, Any]:
    items = video_items(videos)
    return {
        "channels": [channel.name for channel in channels],
        "videos": items,
        "count": len(items),
    }


def catalogue_response(catalogue: Mapping[str, PredefinedChannel]) -> dict[str, Any]:
    return {"channels": [channel.model_dump() for channel in catalogue.values()]}


def error_body(error: str, details: Any) -> dict[str, Any]:
    return {"error": error, "details": details}
