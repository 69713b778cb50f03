"""Core orchestrator - drives one upload-and-process operation at a time."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from ..models import (
    Cancelled,
    Completed,
    Failed,
    Idle,
    JobStatus,
    JobStatusType,
    OrchestratorConfig,
    Processing,
    Uploading,
    UploadState,
    VideoFile,
)
from ..protocols import IJobService
from ..utils.events import EventEmitter
from ..utils.strings import capitalize_first
from .polling import PollDecision, PollLoop, Sleep

logger = logging.getLogger(__name__)

CREATING_JOB = "Creating job..."
STARTING = "Starting..."
JOB_TIMED_OUT = "Job timed out"
FAILED_TO_FETCH_RESULTS = "Failed to fetch results"
UNKNOWN_ERROR = "Unknown error"


def _describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return UNKNOWN_ERROR


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class UploadOrchestrator:
    """
    Uploads a media file and tracks the resulting processing job.

    Pipeline: upload target -> byte transfer -> job creation -> status
    polling -> results. The current phase is exposed as a single
    ``UploadState`` snapshot; observers are notified of every change.

    Every ``start()`` mints a new operation generation. Continuations of an
    operation only touch state while their generation is still the live
    one, so ``cancel()``, ``reset()``, ``close()`` or a newer ``start()``
    make any in-flight work inert.

    ``sleep`` replaces ``asyncio.sleep`` between status polls.

    Usage:
        async with UploadOrchestrator(job_service) as orchestrator:
            orchestrator.on_state(lambda state: print(state))
            await orchestrator.start(VideoFile.from_path(path))
            state = await orchestrator.wait()
    """

    def __init__(
        self,
        service: IJobService,
        config: Optional[OrchestratorConfig] = None,
        sleep: Optional[Sleep] = None,
    ):
        self._service = service
        self._config = config or OrchestratorConfig()
        self._sleep = sleep
        self._events = EventEmitter()
        self._state: UploadState = Idle()
        self._generation = 0
        self._cancelled = False
        self._closed = False
        self._job_id: Optional[str] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._settled = asyncio.Event()
        self._settled.set()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    # Observation

    @property
    def state(self) -> UploadState:
        """Current upload state snapshot."""
        return self._state

    @property
    def job_id(self) -> Optional[str]:
        """Id of the job created by the current operation, if any."""
        return self._job_id

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_closed(self) -> bool:
        return self._closed

    def on_state(self, callback: Callable[[UploadState], None]):
        """Called with every new state snapshot."""
        self._events.on("state", callback)

    def on_complete(self, callback: Callable[[Completed], None]):
        """Called when an operation completes successfully."""
        self._events.on("complete", callback)

    def on_error(self, callback: Callable[[Failed], None]):
        """Called when an operation ends in an error."""
        self._events.on("error", callback)

    def off_state(self, callback: Callable[[UploadState], None]):
        self._events.off("state", callback)

    async def wait(self) -> UploadState:
        """Wait until the current operation reaches a terminal state (or is abandoned)."""
        await self._settled.wait()
        return self._state

    # Control

    async def start(self, file: VideoFile, stack_id: Optional[str] = None) -> None:
        """
        Upload ``file`` and launch tracking of the processing job.

        Returns once polling is running, or earlier if the pipeline ended.
        Failures are reported through the state, never raised.
        """
        if self._closed:
            raise RuntimeError("UploadOrchestrator is closed")

        generation = self._begin_operation()
        stack_id = stack_id or self._config.default_stack_id
        filename = file.file_name or self._config.default_filename
        content_type = file.mime_type or self._config.default_content_type

        self._settled.clear()
        self._set_state(Uploading(progress=0.0), generation)

        try:
            target = await self._service.get_upload_target(filename, content_type)
            if not self._is_live(generation):
                return

            self._set_state(Uploading(progress=0.5), generation)

            def on_progress(fraction: float):
                self._set_state(Uploading(progress=_clamp(fraction, 0.0, 1.0)), generation)

            await self._service.transfer_payload(
                target.upload_url, file.uri, content_type, on_progress
            )
            if not self._is_live(generation):
                return

            self._set_state(Processing(job_id="", progress=0, step=CREATING_JOB), generation)
            job = await self._service.create_job(target.public_url, {"stackId": stack_id})
        except Exception as e:
            if self._is_live(generation):
                logger.warning(f"Upload of {filename} failed: {e}")
                self._set_state(Failed(message=_describe_exception(e)), generation)
            return

        if not self._is_live(generation):
            # Nobody will track this job any more.
            logger.info(f"Operation abandoned while creating job {job.id}, cancelling it")
            await self._cancel_remote(job.id)
            return

        self._job_id = job.id
        logger.info(f"Created job {job.id} for {filename} (stack {stack_id})")
        self._set_state(Processing(job_id=job.id, progress=0, step=STARTING), generation)
        self._poll_task = asyncio.create_task(self._poll(job.id, generation))

    async def cancel(self) -> None:
        """Abort the current operation. Safe to call at any time."""
        self._generation += 1
        self._cancelled = True
        self._stop_polling()

        job_id = self._job_id
        self._job_id = None
        self._publish(Cancelled())

        if job_id:
            await self._cancel_remote(job_id)

    def reset(self) -> None:
        """Abandon any operation and return to idle."""
        self._generation += 1
        self._stop_polling()
        self._cancelled = False
        self._job_id = None
        self._publish(Idle())

    async def close(self) -> None:
        """
        Tear down the orchestrator.

        Stops polling and silences every further state update. A job that
        is still being tracked is cancelled remotely, best effort.
        """
        if self._closed:
            return
        was_active = self._state.is_active
        job_id = self._job_id
        self._generation += 1
        self._closed = True
        self._stop_polling()
        self._settled.set()
        self._events.clear()

        if was_active and job_id:
            await self._cancel_remote(job_id)

    # Internals

    def _begin_operation(self) -> int:
        self._generation += 1
        self._cancelled = False
        self._job_id = None
        self._stop_polling()
        return self._generation

    def _is_live(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _set_state(self, state: UploadState, generation: int) -> bool:
        """Publish ``state`` only if ``generation`` is still the live operation."""
        if not self._is_live(generation):
            return False
        self._publish(state)
        return True

    def _publish(self, state: UploadState):
        if self._closed:
            return
        self._state = state
        if state.is_terminal or isinstance(state, Idle):
            self._settled.set()
        self._events.emit("state", state)
        if isinstance(state, Completed):
            self._events.emit("complete", state)
        elif isinstance(state, Failed):
            self._events.emit("error", state)

    def _stop_polling(self):
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def _cancel_remote(self, job_id: str):
        try:
            await self._service.cancel_job(job_id)
        except Exception as e:
            logger.debug(f"Best-effort cancel of job {job_id} failed: {e}")

    def _status_to_state(self, job_id: str, status: JobStatus) -> Processing:
        progress = status.progress
        percentage = (progress.percentage if progress else 0) or 0
        step = (progress.message if progress else None) or capitalize_first(status.status)
        return Processing(job_id=job_id, progress=_clamp(percentage, 0, 100), step=step)

    async def _poll(self, job_id: str, generation: int):
        loop = PollLoop(
            lambda: self._service.query_job_status(job_id),
            lambda status: status.is_terminal,
            max_attempts=self._config.max_polling_attempts,
            on_update=lambda status: self._set_state(self._status_to_state(job_id, status), generation),
            should_continue=lambda: self._is_live(generation),
        )
        outcome = await loop.run(self._config.polling_interval, self._sleep)

        if outcome.decision is PollDecision.STOPPED:
            return
        if outcome.decision is PollDecision.EXHAUSTED:
            logger.warning(f"Job {job_id} timed out after {loop.attempts - 1} polls")
            self._set_state(Failed(message=JOB_TIMED_OUT), generation)
            return

        status = outcome.value.status
        if status == JobStatusType.COMPLETED:
            await self._complete(job_id, generation)
        else:
            logger.info(f"Job {job_id} ended with status {status}")
            self._set_state(Failed(message=f"Job {status}"), generation)

    async def _complete(self, job_id: str, generation: int):
        try:
            job, download_urls = await asyncio.gather(
                self._service.fetch_job(job_id),
                self._service.fetch_results(job_id, self._config.results_expires_in),
            )
        except Exception as e:
            logger.warning(f"Fetching results of job {job_id} failed: {e}")
            self._set_state(Failed(message=FAILED_TO_FETCH_RESULTS), generation)
            return

        logger.info(f"Job {job_id} completed")
        self._set_state(Completed(job=job, download_urls=download_urls), generation)
