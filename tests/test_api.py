"""
Tests for the HTTP endpoints. Jobs are recorded, not run, so nothing here
needs ffmpeg or the network.
"""

import pytest
from fastapi.testclient import TestClient

from converter.models import JobState
from converter.service import ConversionService
from main import create_app


@pytest.fixture
def service(settings, store, recording_scheduler):
    svc = ConversionService(settings, store=store, scheduler=recording_scheduler)
    svc.start(verify_tools=False)
    return svc


@pytest.fixture
def client(service):
    return TestClient(create_app(service=service))


# =============================================================================
# Health
# =============================================================================

class TestHealth:

    def test_app_status(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 200
        assert resp.text == "Application is running"


# =============================================================================
# Upload
# =============================================================================

class TestConvertUpload:

    def test_accepts_video(self, client, service, recording_scheduler):
        resp = client.post("/api/convert", files={"file": ("clip.MP4", b"fake video", "video/mp4")})

        assert resp.status_code == 200
        job_id = resp.text
        assert service.get_status(job_id).state is JobState.queued
        assert recording_scheduler.submitted[0][0] == job_id

    def test_upload_is_stored_whole(self, client, storage_dir):
        payload = bytes(range(256)) * 4096
        resp = client.post("/api/convert", files={"file": ("big clip.mkv", payload, "video/x-matroska")})

        assert resp.status_code == 200
        assert (storage_dir / f"{resp.text}-big clip.mkv").read_bytes() == payload

    def test_storage_failure(self, client, service, store, storage_dir):
        blocker = storage_dir / "blocker"
        blocker.write_text("a file, not a directory")
        service.settings = service.settings.model_copy(update={"storage_dir": blocker / "uploads"})

        resp = client.post("/api/convert", files={"file": ("clip.mp4", b"video", "video/mp4")})
        assert resp.status_code == 500
        assert resp.text.startswith("Failed: ")
        assert len(store) == 0

    def test_unsupported_extension(self, client, store):
        resp = client.post("/api/convert", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 400
        assert resp.text == "Unsupported file type."
        assert len(store) == 0

    def test_empty_upload(self, client):
        resp = client.post("/api/convert", files={"file": ("clip.mp4", b"", "video/mp4")})
        assert resp.status_code == 400
        assert resp.text == "No file uploaded"

    def test_missing_part(self, client):
        resp = client.post("/api/convert", data={"other": "x"})
        assert resp.status_code == 400


# =============================================================================
# URL submission
# =============================================================================

class TestDownloadUrl:

    def test_accepts_http_url(self, client, service):
        resp = client.get("/api/download", params={"url": "https://example.com/video.mp4"})
        assert resp.status_code == 200
        assert service.get_status(resp.text).state is JobState.queued

    def test_percent_encoded_url(self, client, recording_scheduler):
        resp = client.get("/api/download?url=https%253A%252F%252Fexample.com%252Fa%2520b.mp4")
        assert resp.status_code == 200
        source = recording_scheduler.submitted[0][2][1]
        assert source.url == "https://example.com/a b.mp4"

    def test_rejects_ftp(self, client, store):
        resp = client.get("/api/download", params={"url": "ftp://example.com/video.mp4"})
        assert resp.status_code == 400
        assert "Only http/https URLs are supported" in resp.text
        assert len(store) == 0

    @pytest.mark.parametrize("query", ["", "?url=", "?url=%20%20"])
    def test_missing_url(self, client, query):
        resp = client.get(f"/api/download{query}")
        assert resp.status_code == 400


# =============================================================================
# Polling & retrieval
# =============================================================================

class TestStatusAndDownload:

    def test_unknown_status(self, client):
        resp = client.get("/api/status/does-not-exist")
        assert resp.status_code == 404

    def test_status_payload(self, client, store):
        store.create("job-1")
        store.set_state("job-1", JobState.running)
        store.set_progress("job-1", 40)
        store.set_message("job-1", "Converting... 40%")

        body = client.get("/api/status/job-1").json()
        assert body["id"] == "job-1"
        assert body["state"] == "RUNNING"
        assert body["progressPercent"] == 40
        assert body["message"] == "Converting... 40%"
        assert body["outputPath"] is None
        assert "createdAt" in body and "updatedAt" in body

    def test_download_before_completion(self, client, store):
        store.create("job-1")
        resp = client.get("/api/download/job-1")
        assert resp.status_code == 404
        assert resp.text == "File not available"

    def test_download_unknown(self, client):
        assert client.get("/api/download/nope").status_code == 404

    def test_download_completed(self, client, store, storage_dir):
        out = storage_dir / "job-1-clip.mp3"
        out.write_bytes(b"ID3audio")
        store.create("job-1")
        store.set_state("job-1", JobState.running)
        store.complete("job-1", str(out))

        resp = client.get("/api/download/job-1")
        assert resp.status_code == 200
        assert resp.content == b"ID3audio"
        assert resp.headers["content-type"] == "application/octet-stream"
        assert "job-1-clip.mp3" in resp.headers["content-disposition"]
