import contextlib
import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import ValidationError

from video_hub.app.services.errors import CacheUnavailable
from video_hub.app.services.models import CacheEntry, VideoSummary

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 2 * 60 * 60  # 2 hours


class ChannelVideoCache(ABC):
    """Snapshots of a channel's first page of videos, keyed by (channel id, requested count)."""

    @abstractmethod
    def get(self, channel_id: str, limit: int) -> CacheEntry | None:
        ...

    @abstractmethod
    def put(self, channel_id: str, limit: int, videos: Sequence[VideoSummary]) -> CacheEntry | None:
        ...


class NullChannelVideoCache(ChannelVideoCache):
    """Used when no backing is configured: every read misses, every write is dropped."""

    def get(self, channel_id: str, limit: int) -> CacheEntry | None:
        return None

    def put(self, channel_id: str, limit: int, videos: Sequence[VideoSummary]) -> CacheEntry | None:
        return None


class InMemoryChannelVideoCache(ChannelVideoCache):
    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[tuple[str, int], CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, channel_id: str, limit: int) -> CacheEntry | None:
        key = (channel_id, limit)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_fresh(self.clock(), self.ttl_seconds):
                self._entries.pop(key, None)
                return None
            return entry

    def put(self, channel_id: str, limit: int, videos: Sequence[VideoSummary]) -> CacheEntry | None:
        entry = CacheEntry(
            channel_id=channel_id,
            limit=limit,
            videos=tuple(videos),
            fetched_at=self.clock(),
        )
        with self._lock:
            self._entries[(channel_id, limit)] = entry
            self._drop_expired(entry.fetched_at)
        return entry

    def _drop_expired(self, now: float) -> int:
        # Caller holds the lock.
        stale = [key for key, entry in self._entries.items() if not entry.is_fresh(now, self.ttl_seconds)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear_expired(self) -> int:
        """Remove every entry past the freshness window; returns how many were dropped."""
        with self._lock:
            return self._drop_expired(self.clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class JsonFileChannelVideoCache(InMemoryChannelVideoCache):
    """In-memory cache mirrored to a JSON file so snapshots survive restarts."""

    def __init__(
        self,
        path: Path,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self.path = Path(path)
        self._load()

    @staticmethod
    def _record_key(channel_id: str, limit: int) -> str:
        return f"{channel_id}:{limit}"

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable video cache file %s: %s", self.path, exc)
            return
        if not isinstance(raw, dict):
            return

        now = self.clock()
        for record in raw.values():
            if not isinstance(record, dict):
                continue
            try:
                entry = CacheEntry.model_validate(record)
            except ValidationError:
                continue
            if not entry.is_fresh(now, self.ttl_seconds):
                continue
            self._entries[(entry.channel_id, entry.limit)] = entry

    def _persist(self, snapshot: dict[str, dict]) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(snapshot, ensure_ascii=True), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise CacheUnavailable(f"could not write video cache file {self.path}: {exc}") from exc

    def put(self, channel_id: str, limit: int, videos: Sequence[VideoSummary]) -> CacheEntry | None:
        entry = CacheEntry(
            channel_id=channel_id,
            limit=limit,
            videos=tuple(videos),
            fetched_at=self.clock(),
        )
        with self._lock:
            self._entries[(channel_id, limit)] = entry
            self._drop_expired(entry.fetched_at)
            snapshot = {
                self._record_key(cached.channel_id, cached.limit): cached.to_record()
                for cached in self._entries.values()
            }
            self._persist(snapshot)
        return entry


def build_cache_store(backend: str, ttl_seconds: float, path: Path | None = None) -> ChannelVideoCache:
    backend = (backend or "memory").strip().lower()
    if backend in {"none", "off", "disabled"}:
        return NullChannelVideoCache()
    if backend == "file":
        if path is None:
            logger.warning("VIDEO_CACHE_BACKEND=file without a cache path; caching disabled")
            return NullChannelVideoCache()
        return JsonFileChannelVideoCache(path, ttl_seconds=ttl_seconds)
    if backend != "memory":
        logger.warning("Unknown VIDEO_CACHE_BACKEND %r; falling back to memory", backend)
    return InMemoryChannelVideoCache(ttl_seconds=ttl_seconds)
