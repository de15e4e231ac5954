import io
import json
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from sku_relay import dependencies
from sku_relay.main import app
from sku_relay.repositories.memory_store import InMemoryStore
from sku_relay.repositories.webhook_log_repo import WebhookLogRepository


def make_image_bytes(fmt: str = "JPEG", size=(40, 30), color="red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeResponse:
    """Just enough of requests.Response for the relay and forwarder."""

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        json_body=None,
        reason: str = "OK",
    ):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.reason = reason
        self._json_body = json_body

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self):
        if self._json_body is not None:
            return self._json_body
        return json.loads(self.content.decode("utf-8"))


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG", (64, 48))


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG", (20, 10), "blue")


@pytest.fixture
def record_store():
    return InMemoryStore()


@pytest.fixture
def file_store():
    return InMemoryStore()


@pytest.fixture
def client(monkeypatch, record_store, file_store):
    monkeypatch.delenv("WEBHOOK_URL", raising=False)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)

    logs = WebhookLogRepository(max_entries=100)
    app.dependency_overrides[dependencies.get_record_store] = lambda: record_store
    app.dependency_overrides[dependencies.get_file_store] = lambda: file_store
    app.dependency_overrides[dependencies.get_webhook_log_repo] = lambda: logs
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
