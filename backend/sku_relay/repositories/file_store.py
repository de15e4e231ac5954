from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from sku_relay.repositories.memory_store import BaseStore
from sku_relay.services.data_url import is_data_url, parse_data_url


@dataclass
class StoredFile:
    """Processed image bytes, or the relay's inline ``data:`` URL."""
    data: Union[bytes, str]
    content_type: str = "image/jpeg"

    def as_bytes(self) -> Tuple[bytes, str]:
        """Return (payload, content_type); raises ValueError on a malformed data URL."""
        if isinstance(self.data, str):
            if not is_data_url(self.data):
                raise ValueError("Stored value is not a data URL")
            return parse_data_url(self.data)
        return self.data, self.content_type


FileStore = BaseStore[StoredFile]


def lookup_file(store: FileStore, *keys: Optional[str]) -> Optional[StoredFile]:
    """First stored file found under any of ``keys`` (None keys are skipped)."""
    for key in keys:
        if not key:
            continue
        stored = store.get(key)
        if stored is not None:
            return stored
    return None
