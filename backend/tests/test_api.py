import io
import zipfile

from conftest import no_sleep
from sku_relay import dependencies, main
from sku_relay.main import app
from sku_relay.repositories.file_store import StoredFile
from sku_relay.services.telegram_forwarder import DeliveryResult, TelegramConfig
from sku_relay.services.upload_processing import UploadPipeline


def _upload(client, sku, *files):
    return client.post(
        "/process",
        data={"sku": sku},
        files=[("files", f) for f in files],
    )


def test_health_and_config(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/config").json() == {"maxUploads": 30, "maxFileMb": 30}


def test_process_returns_per_file_status(client, record_store, file_store, jpeg_bytes):
    app.dependency_overrides[dependencies.get_upload_pipeline] = lambda: UploadPipeline(
        record_store, file_store, sleep=no_sleep
    )
    response = _upload(
        client,
        " ab12 ",
        ("front.jpg", jpeg_bytes, "image/jpeg"),
        ("manual.pdf", b"%PDF-1.4", "application/pdf"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["sku"] == "AB12"
    first, second = body["items"]
    assert first["serverName"] == "AB12_001.jpg"
    assert first["status"] == "done"
    assert first["previewUrl"] == f"/preview/{first['id']}"
    assert first["bufferId"] == first["id"]
    assert (first["width"], first["height"]) == (64, 48)
    assert second["status"] == "failed"
    assert second["errorType"] == "UnsupportedFormat"

    snapshot = client.get("/process").json()["items"]
    assert {item["id"] for item in snapshot} == {first["id"], second["id"]}


def test_process_rejects_bad_submissions(client, jpeg_bytes):
    missing_sku = _upload(client, "", ("a.jpg", jpeg_bytes, "image/jpeg"))
    assert missing_sku.status_code == 400
    assert missing_sku.json()["detail"] == "SKU is required"

    no_files = client.post("/process", data={"sku": "AB12"})
    assert no_files.status_code == 400
    assert no_files.json()["detail"] == "No files provided"


def test_process_enforces_upload_count(client, record_store, file_store, jpeg_bytes):
    app.dependency_overrides[dependencies.get_upload_pipeline] = lambda: UploadPipeline(
        record_store, file_store, max_uploads=1
    )

    response = _upload(
        client,
        "AB12",
        ("a.jpg", jpeg_bytes, "image/jpeg"),
        ("b.jpg", jpeg_bytes, "image/jpeg"),
    )

    assert response.status_code == 400
    assert "Too many files" in response.json()["detail"]


def test_preview_serves_stored_bytes(client, jpeg_bytes):
    item = _upload(client, "AB12", ("a.jpg", jpeg_bytes, "image/jpeg")).json()["items"][0]

    by_id = client.get(f"/preview/{item['id']}")
    by_name = client.get(f"/preview/{item['serverName']}")

    assert by_id.status_code == 200
    assert by_id.content == jpeg_bytes
    assert by_id.headers["content-type"] == "image/jpeg"
    assert by_id.headers["cache-control"] == "public, max-age=3600"
    assert by_name.content == jpeg_bytes


def test_preview_errors(client, file_store):
    file_store.set("broken", StoredFile("data:image/jpeg;base64,"))

    assert client.get("/preview/unknown").status_code == 404
    assert client.get("/preview/broken").status_code == 400


def test_zip_requires_telegram_config(client):
    app.dependency_overrides[dependencies.get_telegram_config] = lambda: None

    response = client.post(
        "/zip-and-telegram",
        json={"sku": "AB12", "items": [{"serverName": "AB12_001.jpg"}], "links": []},
    )

    assert response.status_code == 503


def test_zip_and_telegram_delivers_archive(monkeypatch, client, jpeg_bytes):
    app.dependency_overrides[dependencies.get_telegram_config] = lambda: TelegramConfig("token", "chat")
    sent = {}

    def fake_forward(data, file_name, links, config):
        sent.update(data=data, file_name=file_name, links=links)
        return DeliveryResult(message_ids=[41, 42], chunked=True)

    monkeypatch.setattr(main, "forward_archive", fake_forward)
    items = _upload(
        client,
        "AB12",
        ("a.jpg", jpeg_bytes, "image/jpeg"),
        ("b.jpg", jpeg_bytes, "image/jpeg"),
    ).json()["items"]

    response = client.post(
        "/zip-and-telegram",
        json={
            "sku": "ab12",
            "items": [
                {"serverName": i["serverName"], "bufferId": i["bufferId"], "previewUrl": i["previewUrl"]}
                for i in items
            ],
            "links": ["https://shop/1", "https://shop/2"],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["zipFileName"].startswith("AB12_") and body["zipFileName"].endswith(".zip")
    assert body["telegramMessageId"] == 42
    assert body["telegramMessageIds"] == [41, 42]
    assert sent["file_name"] == body["zipFileName"]
    assert sent["links"] == ["https://shop/1", "https://shop/2"]
    with zipfile.ZipFile(io.BytesIO(sent["data"])) as archive:
        assert archive.namelist() == ["AB12_001.jpg", "AB12_002.jpg"]


def test_zip_with_unknown_files_is_bad_request(client):
    app.dependency_overrides[dependencies.get_telegram_config] = lambda: TelegramConfig("token", "chat")

    response = client.post(
        "/zip-and-telegram",
        json={"sku": "AB12", "items": [{"serverName": "AB12_001.jpg", "bufferId": "gone"}]},
    )

    assert response.status_code == 400


def test_malformed_body_is_400(client):
    response = client.post(
        "/zip-and-telegram",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid request body"}


def test_webhook_logs_newest_first(client):
    for status in (200, 502):
        ack = client.post("/webhook-logs", json={"status": status, "body": {"n": status}})
        assert ack.json() == {"success": True}

    body = client.get("/webhook-logs").json()

    assert body["total"] == 2
    assert [entry["status"] for entry in body["logs"]] == [502, 200]
    assert body["logs"][1]["body"] == {"n": 200}


def test_zip_with_duplicate_names_is_bad_request(client, file_store):
    app.dependency_overrides[dependencies.get_telegram_config] = lambda: TelegramConfig("token", "chat")
    file_store.set("buf-1", StoredFile(b"1"))

    response = client.post(
        "/zip-and-telegram",
        json={
            "sku": "AB12",
            "items": [
                {"serverName": "AB12_001.jpg", "bufferId": "buf-1"},
                {"serverName": "AB12_001.jpg", "bufferId": "buf-1"},
            ],
        },
    )

    assert response.status_code == 400
    assert "Duplicate" in response.json()["detail"]
