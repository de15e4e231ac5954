"""Deliver ZIP archives and link lists through the Telegram bot API"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from sku_relay.config.logging_config import redact_token
from sku_relay.config.upload_config import (
    TELEGRAM_API_BASE,
    TELEGRAM_CAPTION_LIMIT,
    TELEGRAM_MAX_FILE_BYTES,
    TELEGRAM_TIMEOUT_SECONDS,
    get_telegram_credentials,
)
from sku_relay.services.exceptions import FileTooLarge, MessagingAPIError

logger = logging.getLogger(__name__)

TELEGRAM_MESSAGE_LIMIT = 4096


@dataclass
class TelegramConfig:
    bot_token: str
    chat_id: str
    api_base: str = TELEGRAM_API_BASE
    timeout: float = TELEGRAM_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> Optional["TelegramConfig"]:
        """None when TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID is missing."""
        token, chat_id = get_telegram_credentials()
        if not token or not chat_id:
            return None
        return cls(bot_token=token, chat_id=chat_id)

    def method_url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"


@dataclass
class DeliveryResult:
    message_ids: List[int] = field(default_factory=list)
    text_message_ids: List[int] = field(default_factory=list)
    chunked: bool = False

    @property
    def message_id(self) -> int:
        """Id of the last document sent (the one carrying the caption)."""
        return self.message_ids[-1]


def _check_response(response: requests.Response) -> int:
    if response.status_code == 413:
        logger.error("Telegram rejected upload as too large (413)")
        raise FileTooLarge(413, response.text)
    if not 200 <= response.status_code < 300:
        logger.error(f"Telegram API error {response.status_code}: {response.text[:500]}")
        raise MessagingAPIError(response.status_code, response.text)

    try:
        return int(response.json()["result"]["message_id"])
    except (ValueError, KeyError, TypeError) as exc:
        raise MessagingAPIError(response.status_code, f"Unexpected response body: {response.text[:200]}") from exc


def send_document(data: bytes, file_name: str, caption: str, config: TelegramConfig) -> int:
    """Upload one document; returns its message_id."""
    logger.info(
        "Sending to Telegram: bot=%s chat=%s file=%s size=%d",
        redact_token(config.bot_token), config.chat_id, file_name, len(data),
    )
    payload = {"chat_id": config.chat_id}
    if caption:
        payload["caption"] = caption
    response = requests.post(
        config.method_url("sendDocument"),
        data=payload,
        files={"document": (file_name, data, "application/zip")},
        timeout=config.timeout,
    )
    logger.info(f"Telegram response status: {response.status_code}")
    return _check_response(response)


def send_message(text: str, config: TelegramConfig) -> int:
    response = requests.post(
        config.method_url("sendMessage"),
        json={"chat_id": config.chat_id, "text": text, "disable_web_page_preview": True},
        timeout=config.timeout,
    )
    return _check_response(response)


def split_into_chunks(data: bytes, chunk_size: int = TELEGRAM_MAX_FILE_BYTES) -> List[bytes]:
    """Raw byte slices; the pieces are not standalone archives."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


def chunk_file_name(file_name: str, part: int) -> str:
    base = file_name[:-4] if file_name.lower().endswith(".zip") else file_name
    return f"{base}_part{part}.zip"


def _split_text(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> List[str]:
    pieces: List[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            pieces.append(current)
            current = line
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def send_in_chunks(
    data: bytes,
    file_name: str,
    caption: str,
    config: TelegramConfig,
    chunk_size: int = TELEGRAM_MAX_FILE_BYTES,
) -> List[int]:
    """Send ``data`` as ``{base}_part{N}.zip`` pieces; only the last carries the caption."""
    chunks = split_into_chunks(data, chunk_size)
    message_ids: List[int] = []
    for index, chunk in enumerate(chunks, start=1):
        chunk_caption = caption if index == len(chunks) else ""
        try:
            message_ids.append(send_document(chunk, chunk_file_name(file_name, index), chunk_caption, config))
        except MessagingAPIError:
            logger.error(f"Failed to send chunk {index}/{len(chunks)} of {file_name}")
            raise
    return message_ids


def forward_archive(
    data: bytes,
    file_name: str,
    links: List[str],
    config: TelegramConfig,
    max_bytes: int = TELEGRAM_MAX_FILE_BYTES,
) -> DeliveryResult:
    """
    Deliver a ZIP plus its preview links.

    Archives below ``max_bytes`` go in one call; larger ones, or ones Telegram
    rejects with 413, are split. Link lists longer than Telegram's caption
    limit are sent as separate text messages after the document.

    Raises:
        MessagingAPIError: any non-2xx answer that chunking cannot fix
    """
    text = "\n".join(links)
    caption = text if len(text) <= TELEGRAM_CAPTION_LIMIT else ""
    result = DeliveryResult()

    if len(data) < max_bytes:
        try:
            result.message_ids.append(send_document(data, file_name, caption, config))
        except FileTooLarge:
            logger.warning(f"{file_name} too large for a single upload, retrying in chunks")
            result.message_ids = send_in_chunks(data, file_name, caption, config, max(1, max_bytes // 2))
            result.chunked = True
    else:
        result.message_ids = send_in_chunks(data, file_name, caption, config, max_bytes)
        result.chunked = True

    if text and not caption:
        for piece in _split_text(text):
            result.text_message_ids.append(send_message(piece, config))

    return result
