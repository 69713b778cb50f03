"""HTTP adapter for job service API operations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class APIError(RuntimeError):
    """Raised when the API answers with an error status."""

    def __init__(self, message: str, status_code: int, method: str = "", endpoint: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.method = method
        self.endpoint = endpoint


def _error_message(response: httpx.Response) -> str:
    try:
        detail = response.json()
    except ValueError:
        detail = None
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    return f"HTTP {response.status_code}"


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. Server errors and network failures
    are retried with a linear backoff, client errors are raised at once.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        token: Optional[str] = None,
        retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delay: float = 0.5,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._token = token
        self._retries = retries
        self._transport = transport
        self._retry_delay = retry_delay
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        max_attempts = self._retries + 1

        for attempt in range(max_attempts):
            try:
                response = await self._client.request(method, endpoint, **kwargs)
            except httpx.TimeoutException as exc:
                raise TimeoutError("Request timed out") from exc
            except httpx.RequestError as exc:
                if attempt < max_attempts - 1:
                    logger.debug(f"{method} {endpoint} failed ({exc}), retrying")
                    await asyncio.sleep(self._retry_delay * (attempt + 1))
                    continue
                raise

            if response.status_code >= 500 and attempt < max_attempts - 1:
                logger.debug(f"{method} {endpoint} returned {response.status_code}, retrying")
                await asyncio.sleep(self._retry_delay * (attempt + 1))
                continue

            if response.status_code >= 400:
                raise APIError(
                    _error_message(response),
                    response.status_code,
                    method=method,
                    endpoint=endpoint,
                )

            if not response.content:
                return None
            return response.json()

        raise RuntimeError(f"Failed to {method} {endpoint} after {max_attempts} attempts")

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("POST", endpoint, json=json)

    async def delete(self, endpoint: str) -> Any:
        return await self._request("DELETE", endpoint)
