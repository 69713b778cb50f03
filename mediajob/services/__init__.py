"""Services for mediajob."""
from .api_client import APIError, HTTPAPIClient
from .job_service import JobService

__all__ = [
    "APIError",
    "HTTPAPIClient",
    "JobService",
]
