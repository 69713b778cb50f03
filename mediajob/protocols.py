"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator only talks to the job service through IJobService,
so tests and alternative transports can be swapped in.
"""
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .models import DownloadUrlsResponse, Job, JobStatus, UploadTarget

ProgressCallback = Callable[[float], None]


@runtime_checkable
class IJobService(Protocol):
    """Interface for the remote job service."""

    async def get_upload_target(self, filename: str, content_type: str) -> UploadTarget:
        """Request a presigned upload destination."""
        ...

    async def transfer_payload(
        self,
        upload_url: str,
        local_uri: str,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Upload the local file bytes to ``upload_url``."""
        ...

    async def create_job(self, public_url: str, config: Optional[Dict[str, Any]] = None) -> Job:
        """Create a processing job for an uploaded file."""
        ...

    async def query_job_status(self, job_id: str) -> JobStatus:
        """Get the current status of a job."""
        ...

    async def fetch_job(self, job_id: str) -> Job:
        """Get the full job record."""
        ...

    async def fetch_results(self, job_id: str, expires_in: int = 3600) -> DownloadUrlsResponse:
        """Get download URLs for a completed job."""
        ...

    async def cancel_job(self, job_id: str) -> Dict[str, Any]:
        """Request cancellation of a job."""
        ...


@runtime_checkable
class IJobLister(Protocol):
    """Interface for browsing past jobs."""

    async def list_jobs(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Tuple[List[Job], int]:
        """List jobs, newest first, with the total count."""
        ...


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for JSON API operations."""

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET request to API."""
        ...

    async def post(self, endpoint: str, json: Optional[Dict[str, Any]] = None) -> Any:
        """POST request to API."""
        ...

    async def delete(self, endpoint: str) -> Any:
        """DELETE request to API."""
        ...
