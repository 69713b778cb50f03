"""
mediajob - upload a video and track its remote processing job.

The orchestrator depends only on the IJobService protocol; JobService
is the HTTP implementation used by the CLI.

Usage:
    from mediajob import ClientConfig, HTTPAPIClient, JobService, UploadOrchestrator, VideoFile

    config = ClientConfig.from_env()
    async with HTTPAPIClient(config.api_url, token=config.token) as api:
        service = JobService.from_config(api, config)
        async with UploadOrchestrator(service) as orchestrator:
            orchestrator.on_state(print)
            await orchestrator.start(VideoFile.from_path(video_path))
            state = await orchestrator.wait()

    if state.status == "completed":
        print(state.download_urls.image_urls)
"""
from .orchestrator import UploadOrchestrator, PollLoop
from .models import (
    Cancelled,
    ClientConfig,
    Completed,
    DownloadUrlsResponse,
    Failed,
    Idle,
    Job,
    JobProgress,
    JobStatus,
    JobStatusType,
    OrchestratorConfig,
    Processing,
    UploadState,
    UploadTarget,
    Uploading,
    VideoFile,
)
from .protocols import IJobService
from .services import APIError, HTTPAPIClient, JobService

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "PollLoop",
    # States
    "UploadState",
    "Idle",
    "Uploading",
    "Processing",
    "Completed",
    "Failed",
    "Cancelled",
    # Models
    "Job",
    "JobProgress",
    "JobStatus",
    "JobStatusType",
    "UploadTarget",
    "DownloadUrlsResponse",
    "VideoFile",
    "OrchestratorConfig",
    "ClientConfig",
    # Services
    "IJobService",
    "APIError",
    "HTTPAPIClient",
    "JobService",
]
