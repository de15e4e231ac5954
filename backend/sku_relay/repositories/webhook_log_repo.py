from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Deque, List

from sku_relay.models.webhook_logs import WebhookLogEntry, WebhookLogRequest


class WebhookLogRepository:
    """Bounded ring of client-reported webhook results (oldest dropped first)."""

    def __init__(self, max_entries: int = 100):
        self._entries: Deque[WebhookLogEntry] = deque(maxlen=max_entries)

    def append(self, request: WebhookLogRequest) -> WebhookLogEntry:
        entry = WebhookLogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            **request.model_dump(),
        )
        self._entries.append(entry)
        return entry

    def list_recent(self) -> List[WebhookLogEntry]:
        """Most recent first; the stored order is left untouched."""
        return list(reversed(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
