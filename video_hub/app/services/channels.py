import json
import logging
from collections.abc import Mapping
from pathlib import Path

from pydantic import ValidationError

from video_hub.app.services.cache import ChannelVideoCache
from video_hub.app.services.errors import CacheUnavailable, ChannelNotFound, ProviderError
from video_hub.app.services.models import ChannelInfo, PredefinedChannel, VideoPage, VideoSummary
from video_hub.app.services.normalizer import resolve_channel_reference
from video_hub.app.services.provider import VideoProvider

logger = logging.getLogger(__name__)

DEFAULT_CATALOGUE: tuple[PredefinedChannel, ...] = (
    PredefinedChannel(key="network-chuck", id="UC9x0AN7BWHpCDHSm9NiJFJQ", name="NetworkChuck", handle="@NetworkChuck"),
    PredefinedChannel(key="fireship", id="UCsBjURrPoezykLs9EqgamOA", name="Fireship", handle="@Fireship"),
    PredefinedChannel(key="beyond-fireship", id="UC2Xd-TjJByJyK2w1zNwY0zQ", name="Beyond Fireship", handle="@beyondfireship"),
    PredefinedChannel(key="traversy-media", id="UC29ju8bIPH5as8OGnQzwJyA", name="Traversy Media", handle="@TraversyMedia"),
    PredefinedChannel(
        key="programming-with-mosh",
        id="UCWv7vMbMWH4-V0ZXdmDpPBA",
        name="Programming with Mosh",
        handle="@programmingwithmosh",
    ),
)


def default_catalogue() -> dict[str, PredefinedChannel]:
    return {channel.key: channel for channel in DEFAULT_CATALOGUE}


def load_catalogue(path: Path | None) -> dict[str, PredefinedChannel]:
    """
    Read a catalogue override: {"channels": [{"key", "id", "name", "handle"}, ...]}.
    Falls back to the built-in catalogue when the file is missing or unusable.
    """
    if path is None or not path.exists():
        return default_catalogue()

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable channel catalogue %s: %s", path, exc)
        return default_catalogue()

    entries = payload.get("channels") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        logger.warning("Channel catalogue %s has no 'channels' list", path)
        return default_catalogue()

    catalogue: dict[str, PredefinedChannel] = {}
    for raw in entries:
        if not isinstance(raw, dict):
            continue
        try:
            channel = PredefinedChannel.model_validate(raw)
        except ValidationError:
            continue
        key = channel.key.strip().lower()
        if not key or key in catalogue:
            continue
        catalogue[key] = channel.model_copy(update={"key": key})

    if not catalogue:
        logger.warning("Channel catalogue %s is empty; using built-in channels", path)
        return default_catalogue()
    return catalogue


class ChannelAggregator:
    def __init__(
        self,
        provider: VideoProvider,
        cache: ChannelVideoCache,
        catalogue: Mapping[str, PredefinedChannel],
    ):
        self.provider = provider
        self.cache = cache
        self.catalogue = dict(catalogue)

    def _cached_videos(self, channel_id: str, limit: int) -> tuple[VideoSummary, ...] | None:
        try:
            entry = self.cache.get(channel_id, limit)
        except CacheUnavailable as exc:
            logger.warning("Channel video cache read failed for %s: %s", channel_id, exc)
            return None
        if entry is None:
            return None
        return entry.videos

    def _store_videos(self, channel_id: str, limit: int, videos: tuple[VideoSummary, ...]) -> None:
        try:
            self.cache.put(channel_id, limit, videos)
        except CacheUnavailable as exc:
            logger.warning("Channel video cache write failed for %s: %s", channel_id, exc)

    def channel_videos(self, channel_id: str, limit: int, page_token: str | None = None) -> VideoPage:
        # Cached snapshots only ever hold a first page.
        if page_token:
            return self.provider.channel_videos(channel_id, limit, page_token)

        cached = self._cached_videos(channel_id, limit)
        if cached is not None:
            logger.debug("Channel video cache hit: %s (%s)", channel_id, limit)
            return VideoPage(videos=cached, next_page_token=None)

        logger.debug("Channel video cache miss: %s (%s)", channel_id, limit)
        page = self.provider.channel_videos(channel_id, limit)
        self._store_videos(channel_id, limit, page.videos)
        return page

    def channel_info(self, channel_id: str) -> ChannelInfo:
        return self.provider.channel_info(channel_id)

    def resolve(self, reference: str) -> str:
        return resolve_channel_reference(reference, self.provider)

    def channel_with_info(self, channel_id: str, limit: int) -> tuple[ChannelInfo, VideoPage]:
        info = self.channel_info(channel_id)
        return info, self.channel_videos(info.id, limit)

    def channel_from_reference(self, reference: str, limit: int) -> tuple[ChannelInfo, VideoPage]:
        return self.channel_with_info(self.resolve(reference), limit)

    def predefined_channel(self, key: str) -> PredefinedChannel:
        channel = self.catalogue.get((key or "").strip().lower())
        if channel is None:
            raise ChannelNotFound(f"unknown predefined channel: {key}")
        return channel

    def predefined_channel_videos(self, key: str, limit: int) -> tuple[PredefinedChannel, VideoPage]:
        channel = self.predefined_channel(key)
        return channel, self.channel_videos(channel.id, limit)

    def all_predefined_videos(self, limit: int) -> tuple[list[PredefinedChannel], list[VideoSummary]]:
        """
        Latest videos of every catalogue channel, in catalogue order.
        A failing channel is skipped; the call only fails if every channel failed.
        """
        served: list[PredefinedChannel] = []
        videos: list[VideoSummary] = []
        last_error: ProviderError | ChannelNotFound | None = None

        for channel in self.catalogue.values():
            try:
                page = self.channel_videos(channel.id, limit)
            except (ProviderError, ChannelNotFound) as exc:
                logger.warning("Skipping predefined channel %s: %s", channel.key, exc)
                last_error = exc
                continue
            served.append(channel)
            videos.extend(page.videos)

        if not served and last_error is not None:
            raise last_error
        return served, videos
