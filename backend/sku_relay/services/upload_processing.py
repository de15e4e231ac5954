"""Batch upload pipeline: validate, normalize, relay, and record every file"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from sku_relay.config.upload_config import MAX_FILE_MB, MAX_UPLOADS, PROCESS_CONCURRENCY
from sku_relay.models.processing import ProcessingRecord, ProcessingStatus, SubmissionResult, UploadItem
from sku_relay.repositories.file_store import FileStore, StoredFile
from sku_relay.repositories.memory_store import BaseStore
from sku_relay.services.concurrency import run_in_batches
from sku_relay.services.data_url import is_data_url
from sku_relay.services.exceptions import (
    FileRejected,
    InternalError,
    ProcessingFailed,
    RelayServiceError,
    ValidationError,
)
from sku_relay.services.format_normalizer import NormalizedImage, normalize_image
from sku_relay.services.retry import RetryPolicy, retry_with_backoff
from sku_relay.services.webhook_relay import send_batch_to_webhook, send_to_webhook

logger = logging.getLogger(__name__)

Relay = Callable[[bytes, str, str, str], str]
BatchRelay = Callable[[Sequence[Tuple[str, bytes, str]], str], List[str]]

_SKU_STRIP_RE = re.compile(r"[^A-Z0-9_-]")


def normalize_sku(raw: Optional[str]) -> str:
    """Uppercase and drop everything outside [A-Z0-9_-]."""
    return _SKU_STRIP_RE.sub("", (raw or "").strip().upper())


def build_server_name(sku: str, sequence: int) -> str:
    return f"{sku}_{sequence:03d}.jpg"


def local_preview_url(record_id: str) -> str:
    return f"/preview/{record_id}"


def _is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, FileRejected)


class UploadPipeline:
    """
    Drives one submission through normalize -> relay with retries.

    Records are written to ``record_store`` as soon as they are created and
    mutated in place, so a concurrent ``GET /process`` sees live status.
    Processed bytes go to ``file_store`` under the record id and server name.
    """

    def __init__(
        self,
        record_store: BaseStore[ProcessingRecord],
        file_store: FileStore,
        *,
        webhook_url: Optional[str] = None,
        relay: Relay = send_to_webhook,
        batch_relay: BatchRelay = send_batch_to_webhook,
        batch_mode: bool = False,
        policy: RetryPolicy = RetryPolicy(),
        concurrency: int = PROCESS_CONCURRENCY,
        max_uploads: int = MAX_UPLOADS,
        max_file_bytes: int = MAX_FILE_MB * 1024 * 1024,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.record_store = record_store
        self.file_store = file_store
        self.webhook_url = webhook_url
        self.relay = relay
        self.batch_relay = batch_relay
        self.batch_mode = batch_mode
        self.policy = policy
        self.concurrency = concurrency
        self.max_uploads = max_uploads
        self.max_file_bytes = max_file_bytes
        self.sleep = sleep

    # === Validation ===

    def validate(self, sku: Optional[str], uploads: Sequence[UploadItem]) -> str:
        cleaned = (sku or "").strip()
        if not cleaned:
            raise ValidationError("SKU is required")
        if not uploads:
            raise ValidationError("No files provided")
        if self.max_uploads and len(uploads) > self.max_uploads:
            raise ValidationError(f"Too many files: {len(uploads)} (max {self.max_uploads})")
        return cleaned

    def create_records(self, sku: str, uploads: Sequence[UploadItem]) -> List[ProcessingRecord]:
        records = []
        for index, upload in enumerate(uploads, start=1):
            record = ProcessingRecord(
                original_name=upload.filename or f"file_{index}",
                server_name=build_server_name(sku, index),
            )
            record.buffer_id = record.id
            self.record_store.set(record.id, record)
            records.append(record)
        return records

    # === Entry point ===

    async def run(self, sku: Optional[str], uploads: Sequence[UploadItem]) -> SubmissionResult:
        cleaned_sku = self.validate(sku, uploads)
        try:
            records = self.create_records(cleaned_sku, uploads)
            pairs = list(zip(records, uploads))
            logger.info(f"SKU {cleaned_sku}: processing {len(pairs)} file(s)")

            if self.batch_mode and self.webhook_url:
                await self._run_batch(pairs)
            else:
                outcomes = await run_in_batches(pairs, self._process_one, self.concurrency)
                self._contain_faults(pairs, outcomes)
        except RelayServiceError:
            raise
        except Exception as exc:
            logger.exception("SKU %s: unexpected error while processing", cleaned_sku)
            raise InternalError("Internal server error") from exc

        done = sum(1 for r in records if r.status == ProcessingStatus.DONE)
        logger.info(f"SKU {cleaned_sku}: {done}/{len(records)} file(s) done")
        return SubmissionResult(sku=cleaned_sku, items=records)

    def _contain_faults(self, pairs, outcomes) -> None:
        for (record, upload), outcome in zip(pairs, outcomes):
            if isinstance(outcome, BaseException) and not record.is_terminal:
                logger.error("Unexpected failure for %s: %r", upload.filename, outcome)
                if record.status == ProcessingStatus.QUEUED:
                    record.mark_processing()
                record.mark_failed("Internal error", type(outcome).__name__)

    # === Per-file steps ===

    async def _normalize(self, record: ProcessingRecord, upload: UploadItem) -> NormalizedImage:
        if self.max_file_bytes and len(upload.data) > self.max_file_bytes:
            raise FileRejected(
                f"{upload.filename} is {len(upload.data)} bytes; limit is {self.max_file_bytes} bytes"
            )
        return await asyncio.to_thread(normalize_image, upload.data, upload.content_type, upload.filename)

    def _fail(self, record: ProcessingRecord, upload: UploadItem, exc: ProcessingFailed) -> None:
        logger.error(
            f"{upload.filename} ({record.server_name}) failed after {exc.attempts} attempt(s): {exc.last_error}"
        )
        record.mark_failed(str(exc), type(exc.last_error).__name__)

    def _finish(self, record: ProcessingRecord, normalized: NormalizedImage, location: Optional[str]) -> None:
        stored = StoredFile(
            data=location if is_data_url(location) else normalized.data,
            content_type=normalized.content_type,
        )
        self.file_store.set(record.id, stored)
        self.file_store.set(record.server_name, stored)
        record.mark_done(
            width=normalized.width,
            height=normalized.height,
            byte_length=len(normalized.data),
            preview_url=location or local_preview_url(record.id),
        )

    async def _process_one(self, pair: Tuple[ProcessingRecord, UploadItem]) -> ProcessingRecord:
        record, upload = pair
        record.mark_processing()

        async def attempt(number: int) -> Tuple[NormalizedImage, Optional[str]]:
            logger.info(f"{upload.filename} -> {record.server_name}: attempt {number}")
            normalized = await self._normalize(record, upload)
            if not self.webhook_url:
                return normalized, None
            location = await asyncio.to_thread(
                self.relay, normalized.data, normalized.content_type, record.server_name, self.webhook_url
            )
            return normalized, location

        try:
            normalized, location = await retry_with_backoff(
                attempt, self.policy, sleep=self.sleep, retryable=_is_retryable
            )
        except ProcessingFailed as exc:
            self._fail(record, upload, exc)
            return record

        self._finish(record, normalized, location)
        return record

    # === Batch relay mode ===

    async def _normalize_only(self, pair: Tuple[ProcessingRecord, UploadItem]) -> Optional[NormalizedImage]:
        record, upload = pair
        record.mark_processing()
        try:
            return await retry_with_backoff(
                lambda number: self._normalize(record, upload),
                self.policy,
                sleep=self.sleep,
                retryable=_is_retryable,
            )
        except ProcessingFailed as exc:
            self._fail(record, upload, exc)
            return None

    async def _run_batch(self, pairs: List[Tuple[ProcessingRecord, UploadItem]]) -> None:
        outcomes = await run_in_batches(pairs, self._normalize_only, self.concurrency)
        self._contain_faults(pairs, outcomes)
        ready = [
            (record, outcome)
            for (record, _), outcome in zip(pairs, outcomes)
            if isinstance(outcome, NormalizedImage)
        ]
        if not ready:
            return

        files = [(record.server_name, n.data, n.content_type) for record, n in ready]
        locations: List[str] = []
        try:
            locations = await retry_with_backoff(
                lambda number: asyncio.to_thread(self.batch_relay, files, self.webhook_url),
                self.policy,
                sleep=self.sleep,
            )
        except ProcessingFailed as exc:
            # files stay available through their local preview
            logger.error(f"Batch webhook failed after {exc.attempts} attempt(s): {exc.last_error}")

        for index, (record, normalized) in enumerate(ready):
            location = locations[index] if index < len(locations) else None
            try:
                self._finish(record, normalized, location)
            except Exception as exc:
                logger.exception("Unexpected failure finishing %s", record.server_name)
                if not record.is_terminal:
                    record.mark_failed("Internal error", type(exc).__name__)
