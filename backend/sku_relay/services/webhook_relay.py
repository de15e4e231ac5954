"""Relay images to the external processing webhook and interpret its answer"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

import requests

from sku_relay.config.upload_config import HTTP_TIMEOUT_SECONDS
from sku_relay.services.data_url import DEFAULT_MIME, build_data_url
from sku_relay.services.exceptions import WebhookHTTPError

logger = logging.getLogger(__name__)

URL_FIELDS = ("url", "imageUrl", "image")


# === Recognized response shapes ===

@dataclass(frozen=True)
class JsonUrlField:
    url: str


@dataclass(frozen=True)
class JsonUrlsField:
    urls: Tuple[str, ...]


@dataclass(frozen=True)
class PlainTextUrl:
    url: str


@dataclass(frozen=True)
class BinaryPayload:
    content: bytes
    mime_type: str


@dataclass(frozen=True)
class Unrecognized:
    reason: str


ResponseShape = Union[JsonUrlField, JsonUrlsField, PlainTextUrl, BinaryPayload, Unrecognized]


def _url_from_object(payload: dict) -> Optional[str]:
    for field in URL_FIELDS:
        value = payload.get(field)
        if value:
            return str(value)
    return None


def classify_response(content_type: Optional[str], body: bytes) -> ResponseShape:
    """
    Classify a successful webhook response by its Content-Type and body.

    Raises ValueError (including json.JSONDecodeError) on a body that does
    not match its declared type; callers treat that as unreadable.
    """
    declared = content_type or ""

    if "application/json" in declared:
        payload = json.loads(body.decode("utf-8"))
        if isinstance(payload, dict):
            url = _url_from_object(payload)
            if url:
                return JsonUrlField(url)
            urls = payload.get("urls")
            if isinstance(urls, list) and urls:
                return JsonUrlsField(tuple(str(u) for u in urls))
        return Unrecognized("JSON without a url field")

    if "text" in declared:
        text = body.decode("utf-8", errors="replace")
        if text.startswith("http"):
            return PlainTextUrl(text.strip())
        return Unrecognized("text body is not a URL")

    mime_type = declared.split(";")[0].strip() or DEFAULT_MIME
    return BinaryPayload(content=body, mime_type=mime_type)


def resolve_preview_location(shape: ResponseShape, endpoint_url: str) -> str:
    if isinstance(shape, (JsonUrlField, PlainTextUrl)):
        return shape.url
    if isinstance(shape, JsonUrlsField):
        return shape.urls[0]
    if isinstance(shape, BinaryPayload):
        return build_data_url(shape.content, shape.mime_type)
    if isinstance(shape, Unrecognized):
        return endpoint_url
    raise TypeError(f"Unknown response shape: {shape!r}")


def _check_status(response: requests.Response) -> None:
    if not 200 <= response.status_code < 300:
        raise WebhookHTTPError(response.status_code, response.reason or "")


def _content_disposition(filename: str) -> str:
    safe = filename.replace('"', "").replace("\r", "").replace("\n", "")
    return f'attachment; filename="{safe}"'


def send_to_webhook(
    data: bytes,
    content_type: str,
    filename: str,
    url: str,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> str:
    """
    POST one file as a raw body and return its preview location.

    Raises:
        WebhookHTTPError: non-2xx status
        requests.RequestException: network failure or timeout
    """
    headers = {
        "Content-Type": content_type,
        "Content-Disposition": _content_disposition(filename),
    }
    response = requests.post(url, data=data, headers=headers, timeout=timeout)
    logger.info(f"Webhook response for {filename}: {response.status_code}")
    _check_status(response)

    try:
        shape = classify_response(response.headers.get("content-type"), response.content)
        return resolve_preview_location(shape, url)
    except Exception as exc:
        logger.warning("Could not interpret webhook response for %s: %s", filename, exc)
        return url


# === Batch relay ===

def _batch_locations(payload: Any) -> List[str]:
    if isinstance(payload, list):
        locations = []
        for item in payload:
            if isinstance(item, dict) and item.get("dataUrl"):
                locations.append(str(item["dataUrl"]))
            elif isinstance(item, str):
                locations.append(item)
        return locations

    if isinstance(payload, dict):
        if payload.get("dataUrl"):
            return [str(payload["dataUrl"])]
        if isinstance(payload.get("urls"), list):
            return [str(u) for u in payload["urls"]]
        url = _url_from_object(payload)
        if url:
            return [url]
    return []


def send_batch_to_webhook(
    files: Sequence[Tuple[str, bytes, str]],
    url: str,
    timeout: float = HTTP_TIMEOUT_SECONDS,
) -> List[str]:
    """
    POST several files in one multipart request (parts named ``files[i]``).

    Args:
        files: (server_name, data, content_type) triples in submission order

    Returns:
        Preview locations in the order the webhook listed them; may be
        shorter than ``files`` when the webhook returned fewer entries
    """
    parts = [
        (f"files[{index}]", (name, data, content_type))
        for index, (name, data, content_type) in enumerate(files)
    ]
    response = requests.post(url, files=parts, timeout=timeout)
    logger.info(f"Batch webhook response for {len(files)} file(s): {response.status_code}")
    _check_status(response)

    content_type = response.headers.get("content-type") or ""
    try:
        if "application/json" in content_type:
            return _batch_locations(response.json())
        if "text" in content_type:
            text = response.text
            if text.startswith("http"):
                return [text.strip()]
    except Exception as exc:
        logger.warning("Could not interpret batch webhook response: %s", exc)
    return []
