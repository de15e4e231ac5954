"""
Upload pipeline, webhook and Telegram configuration
"""
import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _int_env(*names: str, default: int) -> int:
    for name in names:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            continue
        try:
            return int(raw)
        except ValueError:
            continue
    return default


# Client-side ceilings (the NEXT_PUBLIC_* names are what the frontend reads)
MAX_UPLOADS = _int_env("MAX_UPLOADS", "NEXT_PUBLIC_MAX_UPLOADS", default=30)
MAX_FILE_MB = _int_env("MAX_FILE_MB", "NEXT_PUBLIC_MAX_FILE_MB", default=30)

# Retry / fan-out
RETRY_MAX_ATTEMPTS = _int_env("RETRY_MAX_ATTEMPTS", default=3)
RETRY_BACKOFF_BASE_MS = _int_env("RETRY_BACKOFF_BASE_MS", default=1000)
PROCESS_CONCURRENCY = _int_env("PROCESS_CONCURRENCY", default=3)

# Outbound HTTP timeouts (seconds)
HTTP_TIMEOUT_SECONDS = _int_env("HTTP_TIMEOUT_SECONDS", default=60)
TELEGRAM_TIMEOUT_SECONDS = _int_env("TELEGRAM_TIMEOUT_SECONDS", default=120)

# In-memory store expiry
FILE_TTL_SECONDS = _int_env("FILE_TTL_SECONDS", default=60 * 60)
RECORD_TTL_SECONDS = _int_env("RECORD_TTL_SECONDS", default=24 * 60 * 60)
SWEEP_INTERVAL_SECONDS = _int_env("SWEEP_INTERVAL_SECONDS", default=10 * 60)
WEBHOOK_LOG_LIMIT = 100

# Image normalization
JPEG_QUALITY = 90
DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080

# Telegram
TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_MAX_FILE_BYTES = 50 * 1024 * 1024
TELEGRAM_CAPTION_LIMIT = 1024

PREVIEW_CACHE_CONTROL = "public, max-age=3600"


def get_cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_webhook_url() -> Optional[str]:
    """Processing webhook target, read at call time."""
    url = os.getenv("WEBHOOK_URL", "").strip()
    return url or None


def get_telegram_credentials() -> tuple[str, str]:
    """Return (bot_token, chat_id); either may be empty when not configured."""
    return (
        os.getenv("TELEGRAM_BOT_TOKEN", "").strip(),
        os.getenv("TELEGRAM_CHAT_ID", "").strip(),
    )


def get_webhook_mode() -> str:
    """'single' posts each file on its own; 'batch' posts one multipart request."""
    mode = os.getenv("WEBHOOK_MODE", "single").strip().lower()
    return mode if mode in ("single", "batch") else "single"
