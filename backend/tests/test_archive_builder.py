import io
import zipfile
from datetime import datetime, timezone

import pytest

from sku_relay.models.archive import ArchiveItem
from sku_relay.repositories.file_store import StoredFile
from sku_relay.services.archive_builder import build_zip, build_zip_file_name, collect_archive_entries
from sku_relay.services.data_url import build_data_url
from sku_relay.services.exceptions import ArchiveError, ValidationError


def test_zip_file_name_uses_sku_and_timestamp():
    now = datetime(2024, 3, 9, 14, 5, 7, tzinfo=timezone.utc)

    assert build_zip_file_name("AB12", now) == "AB12_2024-03-09T140507.zip"


def test_zip_holds_entries_in_order():
    entries = [
        ("AB12_001.jpg", b"first" * 100),
        ("AB12_002.jpg", b"second" * 100),
        ("AB12_003.jpg", b""),
    ]

    data = build_zip(entries)

    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert archive.namelist() == [name for name, _ in entries]
        for name, payload in entries:
            assert archive.read(name) == payload
            assert archive.getinfo(name).compress_type == zipfile.ZIP_DEFLATED


def test_duplicate_names_are_rejected():
    with pytest.raises(ArchiveError):
        build_zip([("A.jpg", b"1"), ("A.jpg", b"2")])


def test_collect_resolves_each_source(file_store):
    file_store.set("buf-1", StoredFile(b"from-buffer"))
    file_store.set("S_002.jpg", StoredFile(build_data_url(b"from-name", "image/jpeg")))
    items = [
        ArchiveItem(serverName="S_001.jpg", bufferId="buf-1"),
        ArchiveItem(serverName="S_002.jpg", bufferId="expired"),
        ArchiveItem(serverName="S_003.jpg", previewUrl=build_data_url(b"inline")),
        ArchiveItem(serverName="S_004.jpg", previewUrl="https://cdn/S_004.jpg"),
    ]

    entries = collect_archive_entries(items, file_store)

    assert entries == [
        ("S_001.jpg", b"from-buffer"),
        ("S_002.jpg", b"from-name"),
        ("S_003.jpg", b"inline"),
    ]


def test_collect_strips_directories(file_store):
    file_store.set("buf", StoredFile(b"x"))

    entries = collect_archive_entries([ArchiveItem(serverName="../../etc/passwd", bufferId="buf")], file_store)

    assert entries == [("passwd", b"x")]


def test_collect_with_nothing_available(file_store):
    with pytest.raises(ValidationError):
        collect_archive_entries([ArchiveItem(serverName="S_001.jpg", bufferId="gone")], file_store)


def test_collect_rejects_duplicate_names(file_store):
    file_store.set("buf-1", StoredFile(b"1"))
    file_store.set("buf-2", StoredFile(b"2"))
    items = [
        ArchiveItem(serverName="S_001.jpg", bufferId="buf-1"),
        ArchiveItem(serverName="nested/S_001.jpg", bufferId="buf-2"),
    ]

    with pytest.raises(ValidationError) as excinfo:
        collect_archive_entries(items, file_store)

    assert "S_001.jpg" in str(excinfo.value)
