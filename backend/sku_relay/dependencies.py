"""Per-process stores and FastAPI dependency providers.

Tests replace any of these through ``app.dependency_overrides``.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Depends

from sku_relay.config.upload_config import (
    FILE_TTL_SECONDS,
    RECORD_TTL_SECONDS,
    WEBHOOK_LOG_LIMIT,
    get_webhook_mode,
    get_webhook_url,
)
from sku_relay.models.processing import ProcessingRecord
from sku_relay.repositories.file_store import FileStore, StoredFile
from sku_relay.repositories.memory_store import BaseStore, InMemoryStore
from sku_relay.repositories.webhook_log_repo import WebhookLogRepository
from sku_relay.services.telegram_forwarder import TelegramConfig
from sku_relay.services.upload_processing import UploadPipeline

record_store: InMemoryStore[ProcessingRecord] = InMemoryStore(ttl_seconds=RECORD_TTL_SECONDS)
file_store: InMemoryStore[StoredFile] = InMemoryStore(ttl_seconds=FILE_TTL_SECONDS)
webhook_log_repo = WebhookLogRepository(max_entries=WEBHOOK_LOG_LIMIT)


def get_record_store() -> BaseStore[ProcessingRecord]:
    return record_store


def get_file_store() -> FileStore:
    return file_store


def get_webhook_log_repo() -> WebhookLogRepository:
    return webhook_log_repo


def get_telegram_config() -> Optional[TelegramConfig]:
    return TelegramConfig.from_env()


def get_upload_pipeline(
    records: BaseStore[ProcessingRecord] = Depends(get_record_store),
    files: FileStore = Depends(get_file_store),
) -> UploadPipeline:
    return UploadPipeline(
        records,
        files,
        webhook_url=get_webhook_url(),
        batch_mode=get_webhook_mode() == "batch",
    )
