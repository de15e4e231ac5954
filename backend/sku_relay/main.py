import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from sku_relay import dependencies
from sku_relay.config.logging_config import setup_logging
from sku_relay.config.upload_config import (
    MAX_FILE_MB,
    MAX_UPLOADS,
    PREVIEW_CACHE_CONTROL,
    SWEEP_INTERVAL_SECONDS,
    get_cors_origins,
)
from sku_relay.dependencies import (
    get_file_store,
    get_record_store,
    get_telegram_config,
    get_upload_pipeline,
    get_webhook_log_repo,
)
from sku_relay.models.archive import ZipTelegramRequest, ZipTelegramResponse
from sku_relay.models.processing import (
    ProcessingSnapshotResponse,
    SubmissionResult,
    UploadItem,
    UploadLimitsResponse,
)
from sku_relay.models.webhook_logs import WebhookLogAck, WebhookLogRequest, WebhookLogsResponse
from sku_relay.repositories.file_store import lookup_file
from sku_relay.services.archive_builder import build_zip, build_zip_file_name, collect_archive_entries
from sku_relay.services.exceptions import ArchiveError, MessagingAPIError, RelayServiceError, ValidationError
from sku_relay.services.store_sweeper import sweep_periodically
from sku_relay.services.telegram_forwarder import forward_archive
from sku_relay.services.upload_processing import normalize_sku

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    sweeper = asyncio.create_task(
        sweep_periodically(
            {"records": dependencies.record_store, "files": dependencies.file_store},
            SWEEP_INTERVAL_SECONDS,
        )
    )
    try:
        yield
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


# Create FastAPI app
app = FastAPI(title="SKU Photo Relay API", version="1.0", lifespan=lifespan)

# Setup CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def malformed_request_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are a plain 400 rather than FastAPI's 422"""
    logger.info(f"Rejected malformed request to {request.url.path}: {len(exc.errors())} error(s)")
    return JSONResponse(status_code=400, content={"detail": "Invalid request body"})


@app.get("/health")
def health():
    """Health check endpoint"""
    return {"status": "ok"}


@app.get("/config", response_model=UploadLimitsResponse)
def get_upload_limits():
    """Upload ceilings the client should enforce before submitting"""
    return UploadLimitsResponse(max_uploads=MAX_UPLOADS, max_file_mb=MAX_FILE_MB)


# ============================================================================
# PROCESSING ENDPOINTS
# ============================================================================

@app.post("/process", response_model=SubmissionResult)
async def process_uploads(
    sku: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
    pipeline=Depends(get_upload_pipeline),
):
    """
    Normalize and relay a batch of images for one SKU.
    Always 200 with per-file status unless the request itself is invalid.
    """
    uploads = []
    for upload in files or []:
        uploads.append(
            UploadItem(
                filename=upload.filename or "",
                data=await upload.read(),
                content_type=upload.content_type or "",
            )
        )

    try:
        return await pipeline.run(normalize_sku(sku), uploads)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RelayServiceError as e:
        logger.error(f"Processing error for SKU {sku!r}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
    except Exception:
        logger.exception("Processing error for SKU %r", sku)
        raise HTTPException(status_code=500, detail="Internal server error")


@app.get("/process", response_model=ProcessingSnapshotResponse)
async def list_processing_items(records=Depends(get_record_store)):
    """Snapshot of every in-memory record across submissions"""
    return ProcessingSnapshotResponse(items=[record for _, record in records.items()])


@app.get("/preview/{item_id}")
async def get_preview(item_id: str, files=Depends(get_file_store)):
    """Serve stored image bytes by record id or server file name"""
    stored = lookup_file(files, item_id)
    if stored is None:
        logger.info(f"Preview not found: {item_id}")
        raise HTTPException(status_code=404, detail="File not found")

    try:
        payload, content_type = stored.as_bytes()
    except ValueError:
        logger.error(f"Invalid data URL format for file: {item_id}")
        raise HTTPException(status_code=400, detail="Invalid data URL format")

    return Response(
        content=payload,
        media_type=content_type,
        headers={"Cache-Control": PREVIEW_CACHE_CONTROL},
    )


# ============================================================================
# ARCHIVE / TELEGRAM
# ============================================================================

@app.post("/zip-and-telegram", response_model=ZipTelegramResponse)
async def zip_and_send_to_telegram(
    request: ZipTelegramRequest,
    files=Depends(get_file_store),
    telegram=Depends(get_telegram_config),
):
    """Bundle stored files into a ZIP and deliver it with the preview links"""
    sku = normalize_sku(request.sku)
    if not sku:
        raise HTTPException(status_code=400, detail="SKU is required")
    if telegram is None:
        raise HTTPException(status_code=503, detail="Telegram is not configured")

    try:
        entries = collect_archive_entries(request.items, files)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    zip_file_name = build_zip_file_name(sku)
    try:
        zip_bytes = build_zip(entries)
        delivery = await asyncio.to_thread(forward_archive, zip_bytes, zip_file_name, request.links, telegram)
    except ArchiveError as e:
        logger.error(f"Archive error for {zip_file_name}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create ZIP")
    except MessagingAPIError as e:
        logger.error(f"Telegram delivery failed for {zip_file_name}: status {e.status_code}")
        raise HTTPException(status_code=500, detail="Failed to send ZIP to Telegram")
    except Exception:
        logger.exception("ZIP and Telegram error for %s", zip_file_name)
        raise HTTPException(status_code=500, detail="Failed to create ZIP and send to Telegram")

    logger.info(f"Delivered {zip_file_name} ({len(entries)} file(s), {len(zip_bytes)} bytes)")
    return ZipTelegramResponse(
        ok=True,
        zip_file_name=zip_file_name,
        telegram_message_id=delivery.message_id,
        telegram_message_ids=delivery.message_ids,
    )


# ============================================================================
# WEBHOOK LOGS
# ============================================================================

@app.post("/webhook-logs", response_model=WebhookLogAck)
async def add_webhook_log(request: WebhookLogRequest, logs=Depends(get_webhook_log_repo)):
    logs.append(request)
    return WebhookLogAck(success=True)


@app.get("/webhook-logs", response_model=WebhookLogsResponse)
async def list_webhook_logs(logs=Depends(get_webhook_log_repo)):
    """Most recent first"""
    entries = logs.list_recent()
    return WebhookLogsResponse(logs=entries, total=len(entries))
