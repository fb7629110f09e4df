"""End-to-end tests for the files API."""
import re
from pathlib import Path

from fastapi.testclient import TestClient

from filehost.config import Settings
from filehost.main import create_app


def _incoming_files(settings):
    return list((Path(settings.FILE_STORAGE_PATH) / ".incoming").iterdir())


def test_upload_and_list(client, upload):
    response = upload()

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["fileSize"] == 10
    assert body["originalName"] == "a.txt"
    assert len(body["fileId"]) >= 16
    assert re.fullmatch(r"[A-Za-z0-9_-]+", body["fileId"])
    assert body["url"] == f"/api/files/{body['fileId']}"
    assert body["downloadUrl"] == f"/api/download/{body['fileId']}"

    files = client.get("/api/files").json()
    assert len(files) == 1
    assert files[0]["id"] == body["fileId"]
    assert files[0]["views"] == 0
    assert files[0]["downloads"] == 0
    assert files[0]["mimeType"] == "text/plain"


def test_upload_with_wrong_key(client, upload, settings):
    response = upload(key="wrong")

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid upload key"}
    assert client.get("/api/files").json() == []
    assert _incoming_files(settings) == []


def test_upload_without_file(client):
    response = client.post("/api/upload", data={"uploadKey": "test-upload-key"})

    assert response.status_code == 400
    assert response.json() == {"error": "No file uploaded"}


def test_upload_empty_file(client, upload, settings):
    response = upload(content=b"")

    assert response.status_code == 400
    assert client.get("/api/files").json() == []
    assert _incoming_files(settings) == []


def test_upload_too_large(client, upload, settings):
    response = upload(content=b"x" * (settings.MAX_UPLOAD_BYTES + 1))

    assert response.status_code == 413
    assert client.get("/api/files").json() == []
    assert _incoming_files(settings) == []


def test_counters(client, upload):
    """Two downloads and one view show up in the record and the stats."""
    file_id = upload().json()["fileId"]

    for _ in range(2):
        response = client.get(f"/api/download/{file_id}")
        assert response.status_code == 200
        assert response.content == b"0123456789"
        assert "attachment" in response.headers["content-disposition"]
        assert response.headers["x-file-size"] == "10"

    response = client.get(f"/api/files/{file_id}")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers["content-disposition"].startswith("inline")

    record = client.get(f"/api/files/{file_id}/metadata").json()
    assert record["downloads"] == 2
    assert record["views"] == 1

    assert client.get("/api/stats").json() == {
        "totalFiles": 1,
        "totalDownloads": 2,
        "totalStorageUsed": 10,
    }


def test_delete(client, upload):
    file_id = upload().json()["fileId"]

    response = client.delete(f"/api/files/{file_id}")
    assert response.status_code == 200
    assert response.json() == {"success": True}

    assert client.get(f"/api/files/{file_id}").status_code == 404
    assert client.delete(f"/api/files/{file_id}").status_code == 404
    assert client.get("/api/files").json() == []


def test_unknown_id_is_404(client):
    for url in ("/api/files/nope", "/api/files/nope/metadata", "/api/files/nope/thumbnail", "/api/download/nope"):
        response = client.get(url)
        assert response.status_code == 404
        assert response.json() == {"error": "File not found"}


def test_missing_blob_is_404_and_not_counted(client, upload, settings):
    file_id = upload().json()["fileId"]
    (Path(settings.FILE_STORAGE_PATH) / file_id).unlink()

    assert client.get(f"/api/files/{file_id}").status_code == 404
    assert client.get(f"/api/download/{file_id}").status_code == 404

    record = client.get(f"/api/files/{file_id}/metadata").json()
    assert (record["views"], record["downloads"]) == (0, 0)


def test_image_upload_gets_thumbnail_and_metadata(client, upload, settings):
    body = upload(name="cat.png", content=b"\x89PNG fake", mime="image/png").json()
    file_id = body["fileId"]
    thumb_path = Path(settings.FILE_STORAGE_PATH) / "thumbnails" / f"{file_id}_thumb"
    assert thumb_path.exists()

    record = client.get(f"/api/files/{file_id}/metadata").json()
    assert record["metadata"] == {"width": 1920, "height": 1080, "format": "png"}

    # Regenerated on demand when missing
    thumb_path.unlink()
    response = client.get(f"/api/files/{file_id}/thumbnail")
    assert response.status_code == 200
    assert response.content == b"\x89PNG fake"
    assert thumb_path.exists()


def test_document_has_no_thumbnail(client, upload):
    file_id = upload().json()["fileId"]

    response = client.get(f"/api/files/{file_id}/thumbnail")

    assert response.status_code == 404
    assert response.json() == {"error": "Thumbnail not available"}
    assert client.get(f"/api/files/{file_id}/metadata").json()["metadata"] == {}


def test_index_survives_restart(settings, upload, client):
    file_id = upload().json()["fileId"]
    client.get(f"/api/download/{file_id}")

    with TestClient(create_app(settings)) as restarted:
        files = restarted.get("/api/files").json()
        assert [f["id"] for f in files] == [file_id]
        assert files[0]["downloads"] == 1
        assert restarted.get(f"/api/files/{file_id}").content == b"0123456789"


def test_health(client, upload):
    upload()

    assert client.get("/api/health").json() == {"status": "ok", "files": 1}


def test_malformed_form_is_400_with_error_body(client):
    """A text value where the file part belongs is rejected with the usual error shape."""
    response = client.post("/api/upload", data={"uploadKey": "test-upload-key", "file": "notafile"})

    assert response.status_code == 400
    assert set(response.json()) == {"error"}
    assert client.get("/api/files").json() == []


def test_uploads_disabled_without_key(storage_root):
    settings = Settings(FILE_STORAGE_PATH=str(storage_root), UPLOAD_KEY="")

    with TestClient(create_app(settings)) as client:
        response = client.post(
            "/api/upload",
            files={"file": ("a.txt", b"0123456789", "text/plain")},
            data={"uploadKey": ""},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Uploads are disabled: no upload key configured"}
        assert client.get("/api/files").json() == []


def test_oversized_content_length_rejected_before_parsing(client, upload, settings):
    response = upload(content=b"x" * (settings.MAX_UPLOAD_BYTES + 128 * 1024))

    assert response.status_code == 413
    assert response.json() == {"error": f"File exceeds upload limit of {settings.MAX_UPLOAD_BYTES} bytes"}
    assert client.get("/api/files").json() == []
    assert _incoming_files(settings) == []


def test_startup_clears_interrupted_uploads(settings, storage_root):
    incoming = storage_root / ".incoming"
    incoming.mkdir(parents=True)
    (incoming / "halfway").write_bytes(b"partial")

    with TestClient(create_app(settings)):
        assert list(incoming.iterdir()) == []
