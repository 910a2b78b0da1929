import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parents[1]


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str) -> Path | None:
    raw = (os.getenv(name) or "").strip()
    return Path(raw) if raw else None


YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY")
YOUTUBE_API_TIMEOUT_SECONDS = max(1, _env_int("YOUTUBE_API_TIMEOUT_SECONDS", 15))

VIDEO_CACHE_BACKEND = (os.getenv("VIDEO_CACHE_BACKEND") or "memory").strip().lower()
VIDEO_CACHE_FILE = _env_path("VIDEO_CACHE_FILE") or (PACKAGE_DIR / "data_runtime" / "channel_video_cache.json")
VIDEO_CACHE_TTL_SECONDS = max(1, _env_int("VIDEO_CACHE_TTL_SECONDS", 2 * 60 * 60))

PREDEFINED_CHANNELS_FILE = _env_path("PREDEFINED_CHANNELS_FILE")

API_RATE_LIMIT_WINDOW_SECONDS = max(1, _env_int("API_RATE_LIMIT_WINDOW_SECONDS", 60))
API_RATE_LIMIT_MAX_REQUESTS = max(1, _env_int("API_RATE_LIMIT_MAX_REQUESTS", 30))

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()


def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:5173"], True
    if raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["http://localhost:5173"], True
    return origins, True
