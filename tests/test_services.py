"""Tests for the HTTP client and job service."""
import json

import httpx
import pytest

from mediajob.models import ClientConfig
from mediajob.services.api_client import APIError, HTTPAPIClient
from mediajob.services.job_service import JobService

API_URL = "https://api.example.com"


def _client(handler, **kwargs):
    return HTTPAPIClient(
        API_URL,
        transport=httpx.MockTransport(handler),
        retry_delay=0,
        **kwargs,
    )


class TestHTTPAPIClient:
    @pytest.mark.asyncio
    async def test_requires_context(self):
        client = HTTPAPIClient(API_URL)
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.get("/api/v1/jobs")

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"ok": True})

        async with _client(handler, token="secret") as client:
            data = await client.get("/api/v1/jobs")

        assert data == {"ok": True}
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"id": "job-1"})

        async with _client(handler, retries=2) as client:
            data = await client.post("/api/v1/jobs", json={"videoUrl": "x"})

        assert data == {"id": "job-1"}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_raises_after_retries_exhausted(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"message": "Internal error"})

        async with _client(handler, retries=1) as client:
            with pytest.raises(APIError) as exc_info:
                await client.get("/api/v1/jobs/job-1")

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Internal error"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(402, json={"message": "Insufficient credits"})

        async with _client(handler) as client:
            with pytest.raises(APIError, match="Insufficient credits") as exc_info:
                await client.post("/api/v1/jobs", json={})

        assert exc_info.value.method == "POST"
        assert exc_info.value.endpoint == "/api/v1/jobs"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_error_without_message_uses_status(self):
        def handler(request):
            return httpx.Response(404, text="not json")

        async with _client(handler) as client:
            with pytest.raises(APIError, match="HTTP 404"):
                await client.get("/api/v1/jobs/missing")

    @pytest.mark.asyncio
    async def test_retries_network_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as client:
            assert await client.get("/health") == {"ok": True}

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(TimeoutError, match="timed out"):
                await client.get("/slow")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        def handler(request):
            return httpx.Response(204)

        async with _client(handler) as client:
            assert await client.delete("/api/v1/jobs/job-1") is None


class TestJobService:
    @pytest.mark.asyncio
    async def test_get_upload_target(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "uploadUrl": "https://s3.example.com/upload",
                "publicUrl": "https://cdn.example.com/video.mp4",
                "key": "videos/video.mp4",
                "expiresIn": 3600,
            })

        async with _client(handler) as api:
            target = await JobService(api).get_upload_target("video.mp4", "video/mp4")

        assert seen["path"] == "/api/v1/uploads/presign"
        assert seen["body"] == {"filename": "video.mp4", "contentType": "video/mp4"}
        assert target.upload_url == "https://s3.example.com/upload"
        assert target.public_url == "https://cdn.example.com/video.mp4"
        assert target.expires_in == 3600

    @pytest.mark.asyncio
    async def test_create_job_sends_stack_config(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={
                "id": "job-123",
                "status": "pending",
                "videoUrl": "https://cdn.example.com/video.mp4",
                "createdAt": "2026-01-01T00:00:00Z",
            })

        async with _client(handler) as api:
            job = await JobService(api).create_job(
                "https://cdn.example.com/video.mp4", {"stackId": "unified_video_analyzer"}
            )

        assert seen["body"] == {
            "videoUrl": "https://cdn.example.com/video.mp4",
            "config": {"stackId": "unified_video_analyzer"},
        }
        assert job.id == "job-123"
        assert job.status == "pending"

    @pytest.mark.asyncio
    async def test_query_job_status(self):
        def handler(request):
            assert request.url.path == "/api/v1/jobs/job-123/status"
            return httpx.Response(200, json={
                "id": "job-123",
                "status": "extracting",
                "progress": {"step": "extracting", "percentage": 42, "message": "Extracting frames"},
            })

        async with _client(handler) as api:
            status = await JobService(api).query_job_status("job-123")

        assert status.status == "extracting"
        assert status.progress.percentage == 42
        assert status.progress.message == "Extracting frames"
        assert status.is_terminal is False

    @pytest.mark.asyncio
    async def test_fetch_results_passes_expiry(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["expires"] = request.url.params.get("expiresIn")
            return httpx.Response(200, json={
                "jobId": "job-123",
                "expiresIn": 600,
                "frames": [{"frameId": "f1", "downloadUrl": "https://example.com/f1.png"}],
                "commercialImages": {"lifestyle": {"v1": "https://example.com/img1.jpg"}},
            })

        async with _client(handler) as api:
            results = await JobService(api).fetch_results("job-123", expires_in=600)

        assert seen["path"] == "/api/v1/jobs/job-123/download-urls"
        assert seen["expires"] == "600"
        assert results.frames[0].download_url == "https://example.com/f1.png"
        assert results.image_urls == ["https://example.com/img1.jpg"]

    @pytest.mark.asyncio
    async def test_cancel_job_uses_delete(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            return httpx.Response(200, json={"id": "job-123", "status": "cancelled", "message": "Cancelled"})

        async with _client(handler) as api:
            ack = await JobService(api).cancel_job("job-123")

        assert seen["method"] == "DELETE"
        assert ack["message"] == "Cancelled"

    @pytest.mark.asyncio
    async def test_list_jobs(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "jobs": [
                    {"id": "job-1", "status": "completed"},
                    {"id": "job-2", "status": "failed"},
                ],
                "total": 7,
            })

        async with _client(handler) as api:
            jobs, total = await JobService(api).list_jobs(status="completed", limit=2)

        assert seen["params"] == {"status": "completed", "limit": "2"}
        assert [job.id for job in jobs] == ["job-1", "job-2"]
        assert total == 7


class TestTransferPayload:
    @pytest.mark.asyncio
    async def test_streams_file_and_reports_progress(self, tmp_path):
        video = tmp_path / "clip.mp4"
        video.write_bytes(b"x" * 10)
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request.content
            seen["content_type"] = request.headers["Content-Type"]
            return httpx.Response(200)

        progress = []
        service = JobService(
            api_client=None,
            chunk_size=4,
            upload_transport=httpx.MockTransport(handler),
        )
        await service.transfer_payload(
            "https://s3.example.com/upload", f"file://{video}", "video/mp4", progress.append
        )

        assert seen["method"] == "PUT"
        assert seen["body"] == b"x" * 10
        assert seen["content_type"] == "video/mp4"
        assert progress == [0.4, 0.8, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        service = JobService(api_client=None)
        with pytest.raises(FileNotFoundError, match="File not found"):
            await service.transfer_payload(
                "https://s3.example.com/upload", str(tmp_path / "missing.mp4"), "video/mp4"
            )

    @pytest.mark.asyncio
    async def test_rejected_upload_raises(self, tmp_path):
        video = tmp_path / "clip.mp4"
        video.write_bytes(b"data")

        service = JobService(
            api_client=None,
            upload_transport=httpx.MockTransport(lambda request: httpx.Response(403)),
        )
        with pytest.raises(APIError, match="Upload failed with status 403"):
            await service.transfer_payload("https://s3.example.com/upload", str(video), "video/mp4")

    def test_from_config(self):
        config = ClientConfig(upload_timeout=12.0, upload_chunk_size=2048)
        service = JobService.from_config(api_client=None, config=config)
        assert service._upload_timeout == 12.0
        assert service._chunk_size == 2048


def test_job_service_satisfies_protocols():
    from mediajob.protocols import IAPIClient, IJobLister, IJobService

    service = JobService(api_client=None)
    assert isinstance(service, IJobService)
    assert isinstance(service, IJobLister)
    assert isinstance(HTTPAPIClient(API_URL), IAPIClient)
