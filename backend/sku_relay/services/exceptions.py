"""Error taxonomy for the upload pipeline and its outbound calls"""
from __future__ import annotations


class RelayServiceError(Exception):
    """Base class for every error raised by the pipeline."""


class ValidationError(RelayServiceError):
    """Bad request that the caller can correct (HTTP 400)."""


class UnsupportedFormat(RelayServiceError):
    def __init__(self, filename: str, content_type: str | None):
        self.filename = filename
        self.content_type = content_type or ""
        super().__init__(
            f"Unsupported file format '{self.content_type or 'unknown'}' for {filename}. "
            "Use JPG, PNG, WebP or HEIC."
        )


class FileRejected(RelayServiceError):
    """An upload that can never succeed (e.g. over the per-file size ceiling)."""


class WebhookHTTPError(RelayServiceError):
    def __init__(self, status_code: int, status_text: str = ""):
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"Webhook request failed with status {status_code}: {status_text}")


class MessagingAPIError(RelayServiceError):
    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Telegram API error: {status_code} - {body}")


class FileTooLarge(MessagingAPIError):
    """Telegram answered 413; the caller should switch to chunked delivery."""


class ProcessingFailed(RelayServiceError):
    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(str(last_error) or type(last_error).__name__)


class ArchiveError(RelayServiceError):
    pass


class InternalError(RelayServiceError):
    pass


class InvalidStatusTransition(RelayServiceError):
    pass
