"""ZIP packaging of processed files for delivery"""
from __future__ import annotations

import io
import logging
import zipfile
import zlib
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import List, Optional, Sequence, Tuple

from sku_relay.models.archive import ArchiveItem
from sku_relay.repositories.file_store import FileStore, lookup_file
from sku_relay.services.data_url import is_data_url, parse_data_url
from sku_relay.services.exceptions import ArchiveError, ValidationError

logger = logging.getLogger(__name__)


def build_zip_file_name(sku: str, now: Optional[datetime] = None) -> str:
    """``{sku}_{YYYY-MM-DDTHHMMSS}.zip`` in UTC."""
    now = now or datetime.now(timezone.utc)
    return f"{sku}_{now.strftime('%Y-%m-%dT%H%M%S')}.zip"


def build_zip(entries: Sequence[Tuple[str, bytes]]) -> bytes:
    """
    Pack (name, data) pairs into one ZIP, in input order, at maximum compression.

    Raises:
        ArchiveError: duplicate entry names or a compression failure
    """
    seen = set()
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for name, data in entries:
                if name in seen:
                    raise ArchiveError(f"Duplicate archive entry: {name}")
                seen.add(name)
                archive.writestr(name, data)
                logger.debug(f"Added to ZIP: {name} ({len(data)} bytes)")
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, OSError, ValueError) as exc:
        raise ArchiveError(f"Failed to build archive: {exc}") from exc
    return buffer.getvalue()


def collect_archive_entries(items: Sequence[ArchiveItem], file_store: FileStore) -> List[Tuple[str, bytes]]:
    """Resolve each item's bytes by bufferId, then serverName, then an inline data: previewUrl.

    Raises:
        ValidationError: two items share an entry name, or nothing resolves
    """
    entries: List[Tuple[str, bytes]] = []
    names = set()
    for item in items:
        # entry names never carry directories
        name = PurePosixPath(item.server_name.replace("\\", "/")).name
        if not name or name in (".", ".."):
            logger.warning("Skipping item with unusable name %r", item.server_name)
            continue
        if name in names:
            raise ValidationError(f"Duplicate file name in request: {name}")
        names.add(name)
        payload: Optional[bytes] = None
        stored = lookup_file(file_store, item.buffer_id, item.server_name)
        try:
            if stored is not None:
                payload, _ = stored.as_bytes()
            elif is_data_url(item.preview_url):
                payload, _ = parse_data_url(item.preview_url)
        except ValueError as exc:
            logger.warning("Skipping %s: unreadable stored data (%s)", item.server_name, exc)
            continue

        if payload is None:
            logger.warning(f"No stored file for {item.server_name} (bufferId={item.buffer_id})")
            continue
        entries.append((name, payload))

    if not entries:
        raise ValidationError("None of the requested files are available for archiving")
    return entries
