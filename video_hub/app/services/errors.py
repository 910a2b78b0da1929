class VideoServiceError(Exception):
    status_code = 500
    error = "Video service error"

    def __init__(self, details: str, error: str | None = None):
        super().__init__(details)
        self.details = details
        if error:
            self.error = error


class InvalidInput(VideoServiceError):
    status_code = 400
    error = "Invalid request"


class InvalidReference(InvalidInput):
    error = "Invalid reference"


class NotFound(VideoServiceError):
    status_code = 404
    error = "Not found"


class ChannelNotFound(NotFound):
    error = "Channel not found"


class VideoNotFound(NotFound):
    error = "Video not found"


class ProviderError(VideoServiceError):
    status_code = 500
    error = "YouTube request failed"


class QuotaExceeded(ProviderError):
    error = "YouTube API quota exceeded"


class CacheUnavailable(Exception):
    """Raised by cache backends when their storage cannot be read or written."""
