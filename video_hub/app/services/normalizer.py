import re
from typing import Protocol
from urllib.parse import parse_qs, urlparse

from video_hub.app.services.errors import ChannelNotFound, InvalidInput, InvalidReference


SEARCH_LIMIT_MAX = 9
SEARCH_LIMIT_DEFAULT = 9
TRENDING_LIMIT_MAX = 9
TRENDING_LIMIT_DEFAULT = 9
CHANNEL_ID_LIMIT_MAX = 50
CHANNEL_ID_LIMIT_DEFAULT = 10
CHANNEL_URL_LIMIT_MAX = 50
CHANNEL_URL_LIMIT_DEFAULT = 20
PREDEFINED_LIMIT_MAX = 20
PREDEFINED_LIMIT_DEFAULT = 5
PREDEFINED_LIMIT_FALLBACK = 10
NAMED_CHANNEL_LIMIT_MAX = 50
NAMED_CHANNEL_LIMIT_DEFAULT = 20

CHANNEL_ID_RE = re.compile(r"^UC[A-Za-z0-9_-]{22}$")
VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
BARE_HANDLE_RE = re.compile(r"^[A-Za-z0-9._-]{3,100}$")
YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}
SHORT_LINK_HOSTS = {"youtu.be", "www.youtu.be"}


class ChannelResolver(Protocol):
    def resolve_channel(self, hint_type: str, value: str) -> str | None: ...


# ---------------------------
# Result limits
# ---------------------------

def clamp_search_limit(max_results: int | None) -> int:
    if max_results is None or max_results <= 0 or max_results > SEARCH_LIMIT_MAX:
        return SEARCH_LIMIT_DEFAULT
    return max_results


def clamp_trending_limit(max_results: int | None) -> int:
    if max_results is None or max_results < 1 or max_results > TRENDING_LIMIT_MAX:
        return TRENDING_LIMIT_DEFAULT
    return max_results


def validate_channel_id_limit(max_results: int | None) -> int:
    """Absent means the default; any explicit value outside [1, 50] is rejected."""
    if max_results is None:
        return CHANNEL_ID_LIMIT_DEFAULT
    if max_results < 1 or max_results > CHANNEL_ID_LIMIT_MAX:
        raise InvalidInput(f"max_results must be between 1 and {CHANNEL_ID_LIMIT_MAX}")
    return max_results


def clamp_channel_url_limit(max_results: int | None) -> int:
    if max_results is None or max_results <= 0:
        return CHANNEL_URL_LIMIT_DEFAULT
    return min(max_results, CHANNEL_URL_LIMIT_MAX)


def clamp_predefined_limit(max_results: int | None) -> int:
    if max_results is None:
        return PREDEFINED_LIMIT_DEFAULT
    if max_results < 1 or max_results > PREDEFINED_LIMIT_MAX:
        return PREDEFINED_LIMIT_FALLBACK
    return max_results


def clamp_named_channel_limit(max_results: int | None) -> int:
    if max_results is None or max_results < 1 or max_results > NAMED_CHANNEL_LIMIT_MAX:
        return NAMED_CHANNEL_LIMIT_DEFAULT
    return max_results


# ---------------------------
# Channel references
# ---------------------------

def _as_url(raw: str):
    lowered = raw.lower()
    url = raw if "://" in lowered else "https://" + raw
    try:
        return urlparse(url)
    except ValueError as exc:
        raise InvalidReference(f"malformed URL: {raw}") from exc


def _looks_like_url(raw: str) -> bool:
    lowered = raw.lower()
    return (
        "://" in lowered
        or lowered.startswith("www.")
        or lowered.startswith("youtube.com/")
        or lowered.startswith("m.youtube.com/")
    )


def parse_channel_reference(reference: str) -> tuple[str, str]:
    """
    Classify a channel reference.
    Returns: (hint_type, hint_value)
    hint_type: channel_id | handle | username | custom
    """
    raw = (reference or "").strip()
    if not raw:
        raise InvalidReference("channel reference is required")

    if CHANNEL_ID_RE.match(raw):
        return "channel_id", raw

    if raw.startswith("@"):
        handle = raw[1:].strip()
        if not handle or not BARE_HANDLE_RE.match(handle):
            raise InvalidReference(f"invalid channel handle: {raw}")
        return "handle", handle

    if not _looks_like_url(raw):
        if BARE_HANDLE_RE.match(raw):
            return "handle", raw
        raise InvalidReference(f"unrecognized channel reference: {raw}")

    parsed = _as_url(raw)
    host = (parsed.hostname or "").lower()
    if host not in YOUTUBE_HOSTS:
        raise InvalidReference(f"not a YouTube channel URL: {raw}")

    segments = [segment for segment in parsed.path.split("/") if segment]
    if not segments:
        raise InvalidReference(f"unable to extract channel from URL: {raw}")

    head = segments[0]
    if head.startswith("@") and len(head) > 1:
        return "handle", head[1:]
    if len(segments) >= 2:
        value = segments[1]
        if head == "channel" and CHANNEL_ID_RE.match(value):
            return "channel_id", value
        if head == "user":
            return "username", value
        if head == "c":
            return "custom", value

    raise InvalidReference(f"unable to extract channel from URL: {raw}")


def resolve_channel_reference(reference: str, resolver: ChannelResolver) -> str:
    hint_type, hint_value = parse_channel_reference(reference)
    if hint_type == "channel_id":
        return hint_value

    channel_id = resolver.resolve_channel(hint_type, hint_value)
    if not channel_id:
        raise ChannelNotFound(f"could not resolve channel: {reference.strip()}")
    return channel_id


# ---------------------------
# Video references
# ---------------------------

def extract_video_id(reference: str) -> str:
    raw = (reference or "").strip()
    if not raw:
        raise InvalidReference("video_id is required")
    if VIDEO_ID_RE.match(raw):
        return raw

    parsed = _as_url(raw)
    host = (parsed.hostname or "").lower()
    segments = [segment for segment in parsed.path.split("/") if segment]

    candidate = None
    if host in SHORT_LINK_HOSTS and segments:
        candidate = segments[0]
    elif host in YOUTUBE_HOSTS:
        if segments[:1] == ["watch"]:
            candidate = (parse_qs(parsed.query).get("v") or [None])[0]
        elif len(segments) >= 2 and segments[0] in {"embed", "shorts", "live", "v"}:
            candidate = segments[1]

    if candidate and VIDEO_ID_RE.match(candidate):
        return candidate
    raise InvalidReference(f"unrecognized video reference: {raw}")
