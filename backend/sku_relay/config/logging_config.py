"""Logging setup shared by the API and the upload pipeline"""
from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _log_dir() -> Path:
    env_dir = os.getenv("LOG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(__file__).resolve().parents[2] / "logs"


def setup_logging(log_file: str = "sku_relay.log") -> None:
    """Attach console and file handlers to the package logger (idempotent)."""
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logger = logging.getLogger("sku_relay")
    logger.setLevel(level)

    log_dir = _log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / log_file

    has_file = any(
        isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", "") == str(log_path)
        for h in logger.handlers
    )
    has_console = any(
        type(h) is logging.StreamHandler for h in logger.handlers
    )

    formatter = logging.Formatter(LOG_FORMAT)
    if not has_file:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    if not has_console:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        logger.addHandler(console)


def redact_token(token: str | None) -> str:
    """Shorten a secret for log output: first 10 chars then an ellipsis."""
    if not token:
        return "<unset>"
    return f"{token[:10]}..."
