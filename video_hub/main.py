import logging
import time
from collections import deque
from http import HTTPStatus

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from video_hub.app import settings
from video_hub.app.logs import setup_logging
from video_hub.app.services import responses
from video_hub.app.services.cache import build_cache_store
from video_hub.app.services.channels import ChannelAggregator, load_catalogue
from video_hub.app.services.errors import InvalidInput, VideoServiceError
from video_hub.app.services.normalizer import (
    clamp_channel_url_limit,
    clamp_named_channel_limit,
    clamp_predefined_limit,
    clamp_search_limit,
    clamp_trending_limit,
    extract_video_id,
    validate_channel_id_limit,
)
from video_hub.app.services.provider import VideoProvider, YouTubeDataProvider

logger = logging.getLogger("video_hub")


# ---------------------------
# Request throttling
# ---------------------------

API_RATE_LIMIT_BUCKETS: dict[str, deque[float]] = {}


def get_client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_api_rate_limit(request: Request, scope: str = "youtube") -> None:
    now_ts = time.time()
    key = f"{scope}:{get_client_ip(request)}"
    bucket = API_RATE_LIMIT_BUCKETS.get(key)
    if bucket is None:
        bucket = deque()
        API_RATE_LIMIT_BUCKETS[key] = bucket

    cutoff = now_ts - settings.API_RATE_LIMIT_WINDOW_SECONDS
    while bucket and bucket[0] < cutoff:
        bucket.popleft()

    # Forget clients that have gone quiet for a whole window.
    idle_keys = [k for k, b in API_RATE_LIMIT_BUCKETS.items() if k != key and (not b or b[-1] < cutoff)]
    for idle_key in idle_keys:
        del API_RATE_LIMIT_BUCKETS[idle_key]

    if len(bucket) >= settings.API_RATE_LIMIT_MAX_REQUESTS:
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please wait a minute and try again.",
        )

    bucket.append(now_ts)


def http_error_category(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "HTTP error"


def parse_int_param(value: str | None) -> int | None:
    """Lenient query-string integer: anything unparsable counts as absent."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def require_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInput(f"{field} is required")
    return text


# ---------------------------
# Request bodies
# ---------------------------

class SearchRequest(BaseModel):
    query: str
    max_results: int | None = None
    page_token: str | None = None


class VideoDetailsRequest(BaseModel):
    video_id: str


class ChannelVideosRequest(BaseModel):
    channel_id: str
    max_results: int | None = None
    page_token: str | None = None


class ChannelURLRequest(BaseModel):
    channel_url: str
    max_results: int | None = None


class ChannelRequest(BaseModel):
    channel_id: str
    max_results: int | None = None


# ---------------------------
# App setup
# ---------------------------

PROVIDER: VideoProvider = YouTubeDataProvider(
    settings.YOUTUBE_API_KEY,
    timeout=settings.YOUTUBE_API_TIMEOUT_SECONDS,
)
CACHE_STORE = build_cache_store(
    settings.VIDEO_CACHE_BACKEND,
    ttl_seconds=settings.VIDEO_CACHE_TTL_SECONDS,
    path=settings.VIDEO_CACHE_FILE,
)
AGGREGATOR = ChannelAggregator(
    PROVIDER,
    CACHE_STORE,
    load_catalogue(settings.PREDEFINED_CHANNELS_FILE),
)

app = FastAPI(title="video_hub")

cors_origins, cors_credentials = settings.parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup_configure_logging():
    setup_logging(settings.LOG_LEVEL)
    if not settings.YOUTUBE_API_KEY:
        logger.warning("YOUTUBE_API_KEY is not set; video endpoints will fail until it is configured")


@app.exception_handler(VideoServiceError)
async def video_service_error_handler(_request: Request, exc: VideoServiceError):
    if exc.status_code >= 500:
        logger.warning("%s: %s", exc.error, exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content=responses.error_body(exc.error, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=responses.error_body("Invalid request body", jsonable_encoder(exc.errors())),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=responses.error_body(http_error_category(exc.status_code), exc.detail),
        headers=getattr(exc, "headers", None),
    )


# ---------------------------
# Endpoints
# ---------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.post("/api/v1/youtube/search")
def search_videos(payload: SearchRequest, request: Request):
    query = require_text(payload.query, "query")
    limit = clamp_search_limit(payload.max_results)
    enforce_api_rate_limit(request, scope="search")

    page = AGGREGATOR.provider.search(query, limit, payload.page_token or None)
    return responses.video_list_response(page)


@app.post("/api/v1/youtube/video-details")
def video_details(payload: VideoDetailsRequest, request: Request):
    video_id = extract_video_id(payload.video_id)
    enforce_api_rate_limit(request, scope="video_details")

    video = AGGREGATOR.provider.video_details(video_id)
    return responses.video_item(video)


@app.post("/api/v1/youtube/channel-videos")
def channel_videos(payload: ChannelVideosRequest, request: Request):
    channel_id = require_text(payload.channel_id, "channel_id")
    limit = validate_channel_id_limit(payload.max_results)
    enforce_api_rate_limit(request, scope="channel_videos")

    page = AGGREGATOR.channel_videos(channel_id, limit, payload.page_token or None)
    return responses.video_list_response(page)


@app.post("/api/v1/youtube/channel-from-url")
def channel_from_url(payload: ChannelURLRequest, request: Request):
    channel_url = require_text(payload.channel_url, "channel_url")
    limit = clamp_channel_url_limit(payload.max_results)
    enforce_api_rate_limit(request, scope="channel_from_url")

    info, page = AGGREGATOR.channel_from_reference(channel_url, limit)
    return responses.channel_listing_response(info, page)


@app.post("/api/v1/youtube/channel")
def channel_with_info(payload: ChannelRequest, request: Request):
    channel_id = require_text(payload.channel_id, "channel_id")
    limit = clamp_channel_url_limit(payload.max_results)
    enforce_api_rate_limit(request, scope="channel")

    info, page = AGGREGATOR.channel_with_info(channel_id, limit)
    return responses.channel_listing_response(info, page)


@app.get("/api/v1/youtube/trending")
def trending(request: Request, category: str | None = None, max_results: str | None = None):
    limit = clamp_trending_limit(parse_int_param(max_results))
    category = (category or "").strip()
    query = f"trending {category} videos" if category else "trending videos"
    enforce_api_rate_limit(request, scope="trending")

    page = AGGREGATOR.provider.search(query, limit)
    return responses.video_list_response(page)


@app.get("/api/v1/youtube/predefined-channels")
def predefined_channels(request: Request, max_results: str | None = None):
    limit = clamp_predefined_limit(parse_int_param(max_results))
    enforce_api_rate_limit(request, scope="predefined")

    channels, videos = AGGREGATOR.all_predefined_videos(limit)
    return responses.predefined_videos_response(channels, videos)


@app.get("/api/v1/youtube/channels")
def channel_catalogue(request: Request):
    enforce_api_rate_limit(request, scope="catalogue")
    return responses.catalogue_response(AGGREGATOR.catalogue)


@app.get("/api/v1/youtube/channels/{channel_key}")
def named_channel_videos(request: Request, channel_key: str, max_results: str | None = None):
    limit = clamp_named_channel_limit(parse_int_param(max_results))
    enforce_api_rate_limit(request, scope="named_channel")

    channel, page = AGGREGATOR.predefined_channel_videos(channel_key, limit)
    return responses.named_channel_response(channel, page)


@app.get("/api/v1/youtube/fireship")
def fireship_videos(request: Request, max_results: str | None = None):
    return named_channel_videos(request, "fireship", max_results)


@app.get("/api/v1/youtube/network-chuck")
def network_chuck_videos(request: Request, max_results: str | None = None):
    return named_channel_videos(request, "network-chuck", max_results)
