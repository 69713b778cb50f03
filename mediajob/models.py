"""
Models for mediajob.

Immutable dataclasses for the job service payloads and for the
orchestrator's upload state. Service payloads are parsed from the
camelCase JSON the API returns.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import unquote, urlparse


class JobStatusType(str, Enum):
    """Remote job status codes."""
    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    SCORING = "scoring"
    CLASSIFYING = "classifying"
    EXTRACTING_PRODUCT = "extracting_product"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_JOB_STATUSES = frozenset({
    JobStatusType.COMPLETED.value,
    JobStatusType.FAILED.value,
    JobStatusType.CANCELLED.value,
})


@dataclass(frozen=True)
class JobProgress:
    """Progress reported by the service for a running job."""
    step: str = ""
    percentage: float = 0
    message: Optional[str] = None
    total_steps: Optional[int] = None
    current_step: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["JobProgress"]:
        if not data:
            return None
        return cls(
            step=data.get("step") or "",
            percentage=data.get("percentage") or 0,
            message=data.get("message"),
            total_steps=data.get("totalSteps"),
            current_step=data.get("currentStep"),
        )


@dataclass(frozen=True)
class Job:
    """Server-side processing job. Owned by the job service."""
    id: str
    status: str
    video_url: str = ""
    config: Optional[Dict[str, Any]] = None
    progress: Optional[JobProgress] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Job":
        job_id = data.get("id")
        if not job_id:
            raise ValueError("Job payload has no id")
        return cls(
            id=str(job_id),
            status=str(data.get("status") or JobStatusType.PENDING.value),
            video_url=data.get("videoUrl") or "",
            config=data.get("config"),
            progress=JobProgress.from_dict(data.get("progress")),
            result=data.get("result"),
            error=data.get("error"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            completed_at=data.get("completedAt"),
        )


@dataclass(frozen=True)
class JobStatus:
    """Lightweight status snapshot returned by the status endpoint."""
    id: str
    status: str
    progress: Optional[JobProgress] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobStatus":
        return cls(
            id=str(data.get("id") or ""),
            status=str(data.get("status") or ""),
            progress=JobProgress.from_dict(data.get("progress")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass(frozen=True)
class UploadTarget:
    """Presigned upload destination."""
    upload_url: str
    public_url: str
    key: str = ""
    expires_in: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadTarget":
        return cls(
            upload_url=data["uploadUrl"],
            public_url=data["publicUrl"],
            key=data.get("key") or "",
            expires_in=int(data.get("expiresIn") or 0),
        )


@dataclass(frozen=True)
class FrameDownload:
    frame_id: str
    download_url: str


@dataclass(frozen=True)
class DownloadUrlsResponse:
    """Downloadable results of a completed job."""
    job_id: str
    expires_in: int = 0
    frames: List[FrameDownload] = field(default_factory=list)
    commercial_images: Dict[str, Dict[str, str]] = field(default_factory=dict)
    product_metadata: Optional[Dict[str, Any]] = None

    @property
    def image_urls(self) -> List[str]:
        """All commercial image URLs, flattened in variant order."""
        urls = []
        for versions in self.commercial_images.values():
            urls.extend(versions.values())
        return urls

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DownloadUrlsResponse":
        frames = [
            FrameDownload(frame_id=item["frameId"], download_url=item["downloadUrl"])
            for item in data.get("frames") or []
        ]
        return cls(
            job_id=str(data.get("jobId") or ""),
            expires_in=int(data.get("expiresIn") or 0),
            frames=frames,
            commercial_images=dict(data.get("commercialImages") or {}),
            product_metadata=data.get("productMetadata"),
        )


@dataclass(frozen=True)
class VideoFile:
    """Locally selected media file."""
    uri: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def path(self) -> Path:
        """Filesystem path for ``uri`` (accepts plain paths and file:// URIs)."""
        if self.uri.startswith("file://"):
            return Path(unquote(urlparse(self.uri).path))
        return Path(self.uri)

    @classmethod
    def from_path(cls, path: Path, mime_type: Optional[str] = None) -> "VideoFile":
        path = Path(path)
        return cls(uri=str(path), file_name=path.name, mime_type=mime_type)


# Upload state variants. Exactly one is current on an orchestrator.

@dataclass(frozen=True)
class UploadState:
    status = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "error", "cancelled")

    @property
    def is_active(self) -> bool:
        return self.status in ("uploading", "processing")


@dataclass(frozen=True)
class Idle(UploadState):
    status = "idle"


@dataclass(frozen=True)
class Uploading(UploadState):
    progress: float = 0.0
    status = "uploading"


@dataclass(frozen=True)
class Processing(UploadState):
    job_id: str = ""
    progress: float = 0
    step: str = ""
    status = "processing"


@dataclass(frozen=True)
class Completed(UploadState):
    job: Optional[Job] = None
    download_urls: Optional[DownloadUrlsResponse] = None
    status = "completed"


@dataclass(frozen=True)
class Failed(UploadState):
    message: str = ""
    status = "error"


@dataclass(frozen=True)
class Cancelled(UploadState):
    status = "cancelled"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


@dataclass(frozen=True)
class OrchestratorConfig:
    """Immutable configuration for the upload orchestrator."""
    polling_interval: float = 3.0  # seconds
    max_polling_attempts: int = 200  # ~10 minutes at the default interval
    default_stack_id: str = "unified_video_analyzer"
    default_filename: str = "video.mp4"
    default_content_type: str = "video/mp4"
    results_expires_in: int = 3600

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        return cls(
            polling_interval=_env_float("MEDIAJOB_POLLING_INTERVAL", cls.polling_interval),
            max_polling_attempts=_env_int("MEDIAJOB_MAX_POLLING_ATTEMPTS", cls.max_polling_attempts),
        )


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the HTTP job service."""
    api_url: str = "http://127.0.0.1:3000"
    token: Optional[str] = None
    request_timeout: float = 30.0
    upload_timeout: float = 300.0
    retries: int = 2
    upload_chunk_size: int = 1024 * 1024

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            api_url=os.getenv("MEDIAJOB_API_URL") or cls.api_url,
            token=os.getenv("MEDIAJOB_API_TOKEN") or None,
            request_timeout=_env_float("MEDIAJOB_REQUEST_TIMEOUT", cls.request_timeout),
            upload_timeout=_env_float("MEDIAJOB_UPLOAD_TIMEOUT", cls.upload_timeout),
        )
