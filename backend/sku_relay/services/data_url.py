from __future__ import annotations

import base64
import binascii
from typing import Tuple

DEFAULT_MIME = "image/jpeg"


def is_data_url(value: object) -> bool:
    return isinstance(value, str) and value.startswith("data:")


def build_data_url(payload: bytes, mime_type: str | None = None) -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME};base64,{encoded}"


def parse_data_url(value: str) -> Tuple[bytes, str]:
    """Decode ``data:<mime>;base64,<payload>`` into (bytes, mime).

    Raises ValueError when the URL has no payload or the payload is not base64.
    """
    if not is_data_url(value):
        raise ValueError("Not a data URL")

    header, sep, payload = value.partition(",")
    if not sep or not payload:
        raise ValueError("Invalid data URL format")

    mime_type = header[len("data:"):].split(";")[0] or DEFAULT_MIME
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid data URL payload") from exc
