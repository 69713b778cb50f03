"""
Job Service - HTTP implementation of the remote job service contract.

Wraps the JSON API (presign, jobs, status, download URLs) and the
presigned PUT used to transfer file bytes.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx

from ..models import ClientConfig, DownloadUrlsResponse, Job, JobStatus, UploadTarget, VideoFile
from ..protocols import IAPIClient, ProgressCallback
from .api_client import APIError

logger = logging.getLogger(__name__)


async def _iter_file(
    path: Path,
    total: int,
    chunk_size: int,
    on_progress: Optional[ProgressCallback],
) -> AsyncIterator[bytes]:
    sent = 0
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            sent += len(chunk)
            if on_progress and total:
                on_progress(min(sent / total, 1.0))
            yield chunk


class JobService:
    """
    Remote job service over HTTP.

    Implements IJobService and IJobLister protocols.
    """

    def __init__(
        self,
        api_client: IAPIClient,
        upload_timeout: float = 300.0,
        chunk_size: int = 1024 * 1024,
        upload_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize job service.

        Args:
            api_client: JSON client bound to the API base URL
            upload_timeout: Timeout for the presigned PUT, in seconds
            chunk_size: Bytes per streamed chunk (one progress report each)
            upload_transport: Optional httpx transport for the PUT (tests)
        """
        self._api = api_client
        self._upload_timeout = upload_timeout
        self._chunk_size = chunk_size
        self._upload_transport = upload_transport

    @classmethod
    def from_config(cls, api_client: IAPIClient, config: ClientConfig) -> "JobService":
        return cls(
            api_client,
            upload_timeout=config.upload_timeout,
            chunk_size=config.upload_chunk_size,
        )

    async def get_upload_target(self, filename: str, content_type: str = "video/mp4") -> UploadTarget:
        data = await self._api.post("/api/v1/uploads/presign", json={
            "filename": filename,
            "contentType": content_type,
        })
        return UploadTarget.from_dict(data)

    async def transfer_payload(
        self,
        upload_url: str,
        local_uri: str,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        PUT the local file to a presigned URL.

        Streams the file in chunks and reports the uploaded fraction after
        each chunk, then 1.0 once the storage accepted the upload.
        """
        path = VideoFile(uri=local_uri).path
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        total = path.stat().st_size
        logger.debug(f"Uploading {path.name} ({total} bytes)")

        async with httpx.AsyncClient(
            timeout=self._upload_timeout,
            transport=self._upload_transport,
        ) as client:
            response = await client.put(
                upload_url,
                content=_iter_file(path, total, self._chunk_size, on_progress),
                headers={"Content-Type": content_type, "Content-Length": str(total)},
            )

        if response.status_code >= 400:
            raise APIError(
                f"Upload failed with status {response.status_code}",
                response.status_code,
                method="PUT",
                endpoint=upload_url,
            )

        if on_progress:
            on_progress(1.0)

    async def create_job(self, public_url: str, config: Optional[Dict[str, Any]] = None) -> Job:
        payload: Dict[str, Any] = {"videoUrl": public_url}
        if config:
            payload["config"] = config
        data = await self._api.post("/api/v1/jobs", json=payload)
        return Job.from_dict(data)

    async def query_job_status(self, job_id: str) -> JobStatus:
        data = await self._api.get(f"/api/v1/jobs/{job_id}/status")
        return JobStatus.from_dict(data)

    async def fetch_job(self, job_id: str) -> Job:
        data = await self._api.get(f"/api/v1/jobs/{job_id}")
        return Job.from_dict(data)

    async def fetch_results(self, job_id: str, expires_in: int = 3600) -> DownloadUrlsResponse:
        data = await self._api.get(
            f"/api/v1/jobs/{job_id}/download-urls",
            params={"expiresIn": expires_in},
        )
        return DownloadUrlsResponse.from_dict(data)

    async def cancel_job(self, job_id: str) -> Dict[str, Any]:
        data = await self._api.delete(f"/api/v1/jobs/{job_id}")
        return data or {}

    async def list_jobs(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Tuple[List[Job], int]:
        params = {
            key: value
            for key, value in (("status", status), ("limit", limit), ("offset", offset))
            if value is not None
        }
        data = await self._api.get("/api/v1/jobs", params=params or None)
        jobs = [Job.from_dict(item) for item in data.get("jobs") or []]
        return jobs, int(data.get("total") or len(jobs))
