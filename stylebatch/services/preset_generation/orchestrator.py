"""
Preset Generation Orchestrator - runs one batch of style preset generations

Each selected style becomes one remote job. Jobs are submitted, polled and
finalized strictly one after another; a failing job is recorded on its own
record and the batch moves on, while a cancellation stops the batch.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from stylebatch.core.config import settings
from stylebatch.core.exceptions import (
    InputValidationError,
    JobCancelledError,
    JobPollingError,
    StyleBatchException,
)
from stylebatch.schemas.preset_generation import (
    BatchState,
    FlowStep,
    GenerationJob,
    JobStatus,
    JobStatusSnapshot,
    SnapshotStatus,
    StyleDescriptor,
)
from .cancellation import CancellationToken
from .client import ImageUpload, PresetGenerationClient
from .poller import StatusPoller
from .result_sink import GalleryClient, InMemoryGallery, ResultSink
from .store import BatchStateStore, StateListener
from .submitter import JobSubmitter, SubmissionOptions
from .tracker import GenerationJobTracker, InMemoryJobTracker

logger = logging.getLogger(__name__)

NO_STYLES_MESSAGE = "Select at least one style preset."
NO_UPLOAD_MESSAGE = "Upload a character photo to continue."
INVALID_IMAGE_MESSAGE = "Please upload an image file."
JOB_FAILED_MESSAGE = "Preset generation failed."
GENERATION_FAILED_MESSAGE = "Failed to generate preset image."


def validate_image(upload: ImageUpload, max_bytes: int) -> None:
    """Reject uploads that are not images or exceed the size ceiling"""
    if not (upload.content_type or "").startswith("image/"):
        raise InputValidationError(INVALID_IMAGE_MESSAGE)

    if upload.size > max_bytes:
        max_mb = max_bytes // (1024 * 1024)
        raise InputValidationError(f"Image must be {max_mb}MB or smaller.")


def snapshot_error_message(snapshot: JobStatusSnapshot) -> str:
    error = snapshot.job.error
    if isinstance(error, str) and error.strip():
        return error.strip()
    return JOB_FAILED_MESSAGE


class PresetGenerationOrchestrator:
    """Owns the job records of a batch and drives them to completion"""

    def __init__(
        self,
        submitter: JobSubmitter,
        poller: StatusPoller,
        sink: ResultSink,
        tracker: Optional[GenerationJobTracker] = None,
        store: Optional[BatchStateStore] = None,
        max_upload_bytes: Optional[int] = None,
        auto_start: Optional[bool] = None,
    ):
        self.submitter = submitter
        self.poller = poller
        self.sink = sink
        self.tracker = tracker or InMemoryJobTracker()
        self.store = store or BatchStateStore()
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes
        self.auto_start = settings.AUTO_START_ON_UPLOAD if auto_start is None else auto_start

        self.active_poll_tokens: Dict[str, CancellationToken] = {}
        self._batch_token = CancellationToken("batch")
        self._generation = 0
        self._upload: Optional[ImageUpload] = None
        self._auto_start_triggered = False
        self._task: Optional[asyncio.Task] = None

    # State accessors

    @property
    def state(self) -> BatchState:
        return self.store.state

    @property
    def jobs(self):
        return self.store.state.jobs

    @property
    def is_generating(self) -> bool:
        return self.store.state.is_generating

    @property
    def step(self) -> FlowStep:
        return self.store.state.step

    @property
    def error(self) -> Optional[str]:
        return self.store.state.error

    @property
    def upload(self) -> Optional[ImageUpload]:
        return self._upload

    @property
    def aborted(self) -> bool:
        return self._batch_token.cancelled

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    # Batch setup

    def open_for_styles(self, styles: List[StyleDescriptor]) -> None:
        if not styles:
            return

        if self.is_generating:
            self.cancel()

        self._generation += 1
        self._batch_token = CancellationToken("batch")
        self._upload = None
        self._auto_start_triggered = False
        self.store.update(
            jobs=[GenerationJob(style=style) for style in styles],
            step=FlowStep.UPLOAD,
            is_generating=False,
            error=None,
            has_upload=False,
        )
        logger.info(f"Opened preset batch with {len(styles)} style(s)")

    def select_image(self, upload: Optional[ImageUpload]) -> bool:
        """Store the batch input image. Returns False if it was rejected."""
        if upload is None:
            self._upload = None
            self.store.update(has_upload=False, error=None)
            return True

        try:
            validate_image(upload, self.max_upload_bytes)
        except InputValidationError as e:
            logger.warning(f"Rejected upload {upload.filename}: {e.message}")
            self.store.update(error=e.message)
            return False

        self._upload = upload
        self.store.update(has_upload=True, error=None)
        self._maybe_auto_start()
        return True

    def remove_upload(self) -> None:
        self._upload = None
        self.store.update(has_upload=False)

    def clear_error(self) -> None:
        self.store.update(error=None)

    def _maybe_auto_start(self) -> None:
        if not self.auto_start or self._auto_start_triggered:
            return
        if not self.jobs or self.is_generating or self.step != FlowStep.UPLOAD:
            return

        try:
            self.start_in_background()
        except RuntimeError:
            logger.warning("No running event loop; automatic generation start skipped")
            return
        self._auto_start_triggered = True

    # Generation

    def start_in_background(self) -> asyncio.Task:
        """Schedule ``start_generation`` on the running loop"""
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self.start_generation())
        return self._task

    async def start_generation(self) -> BatchState:
        if not self.jobs:
            self.store.update(error=NO_STYLES_MESSAGE)
            return self.state
        if self._upload is None:
            self.store.update(error=NO_UPLOAD_MESSAGE)
            return self.state
        if self.is_generating:
            logger.warning("Generation already in progress; start ignored")
            return self.state

        generation = self._generation
        batch_token = CancellationToken(f"batch-{generation}")
        self._batch_token = batch_token
        upload = self._upload

        self.store.update(is_generating=True, step=FlowStep.GENERATING, error=None)
        logger.info(f"Starting preset generation for {len(self.jobs)} style(s)")

        try:
            for index, job in enumerate(self.jobs):
                if batch_token.cancelled:
                    break
                if job.status != JobStatus.PENDING:
                    continue
                if not await self._run_job(index, job.style, upload, batch_token, generation):
                    break
        finally:
            if generation == self._generation:
                if batch_token.cancelled:
                    self.store.update(is_generating=False)
                else:
                    self.store.update(is_generating=False, step=FlowStep.RESULTS)

        state = self.state
        logger.info(
            f"Preset batch finished: {state.succeeded_count}/{len(state.jobs)} succeeded"
            f"{' (aborted)' if batch_token.cancelled else ''}"
        )
        return state

    async def _run_job(
        self,
        index: int,
        style: StyleDescriptor,
        upload: ImageUpload,
        batch_token: CancellationToken,
        generation: int,
    ) -> bool:
        """Run the job at ``index`` to a terminal state. Returns False when the batch must stop."""
        job_id: Optional[str] = None
        poll_token: Optional[CancellationToken] = None

        try:
            job_id = await self.submitter.submit(style, upload, token=batch_token)

            self._write_job(
                generation,
                index,
                style,
                lambda job: job.advance(status=JobStatus.RUNNING, job_id=job_id, progress=0.0, error=None),
            )
            self.tracker.enqueue(job_id, style.prompt or style.name, self.sink.model_tag)

            poll_token = CancellationToken(job_id)
            if batch_token.cancelled:
                poll_token.cancel()
            self.active_poll_tokens[job_id] = poll_token

            snapshot = await self.poller.poll(
                job_id,
                poll_token,
                on_update=lambda update: self._on_snapshot(generation, index, style, job_id, update),
            )

            if snapshot.status != SnapshotStatus.COMPLETED:
                raise JobPollingError(snapshot_error_message(snapshot))

            result = self.sink.finalize(style, snapshot)

            self._write_job(
                generation,
                index,
                style,
                lambda job: job.advance(
                    status=JobStatus.SUCCEEDED,
                    response=result,
                    progress=100.0,
                    snapshot=snapshot,
                ),
                job_id=job_id,
            )

            await self.sink.forward(result)
            return True

        except JobCancelledError:
            logger.info(f"Preset generation for style {style.id} cancelled")
            return False

        except Exception as e:
            if isinstance(e, StyleBatchException):
                message = e.message
            else:
                message = str(e) or GENERATION_FAILED_MESSAGE
            logger.error(f"Preset generation for style {style.id} failed: {message}")
            self._fail_job(generation, index, style, job_id, message)
            return True

        finally:
            if job_id:
                self.tracker.finalize(job_id)
                self.active_poll_tokens.pop(job_id, None)
            if poll_token:
                poll_token.cancel()

    def _on_snapshot(
        self,
        generation: int,
        index: int,
        style: StyleDescriptor,
        job_id: str,
        snapshot: JobStatusSnapshot,
    ) -> None:
        def apply(job: GenerationJob) -> GenerationJob:
            if job.is_terminal:
                return job

            progress = job.progress
            if snapshot.progress is not None:
                progress = max(progress or 0.0, max(0.0, min(100.0, snapshot.progress)))

            if snapshot.status == SnapshotStatus.FAILED:
                return job.advance(
                    status=JobStatus.FAILED,
                    snapshot=snapshot,
                    progress=progress,
                    error=snapshot_error_message(snapshot),
                )
            return job.advance(snapshot=snapshot, progress=progress)

        self._write_job(generation, index, style, apply, job_id=job_id)
        self.tracker.update(job_id, snapshot)

    def _fail_job(
        self,
        generation: int,
        index: int,
        style: StyleDescriptor,
        job_id: Optional[str],
        message: str,
    ) -> None:
        def apply(job: GenerationJob) -> GenerationJob:
            if job.is_terminal:
                return job
            return job.advance(status=JobStatus.FAILED, error=message)

        self._write_job(generation, index, style, apply, job_id=job_id)

        if generation == self._generation and self.error is None:
            self.store.update(error=message)

    def _write_job(
        self,
        generation: int,
        index: int,
        style: StyleDescriptor,
        mutate: Callable[[GenerationJob], GenerationJob],
        job_id: Optional[str] = None,
    ) -> Optional[GenerationJob]:
        # writes from a closed or replaced batch are dropped
        if generation != self._generation:
            return None

        def guarded(job: GenerationJob) -> GenerationJob:
            # the slot must still hold this style and, once submitted, this remote job
            if job.style is not style or (job_id and job.job_id != job_id):
                return job
            return mutate(job)

        return self.store.update_job(index, guarded)

    # Teardown

    def cancel(self) -> None:
        """Stop the batch: no further jobs are scheduled and active polls end.

        Safe to call any number of times.
        """
        if self._batch_token.cancel():
            logger.info("Preset batch cancelled")
        for token in self.active_poll_tokens.values():
            token.cancel()
        self.active_poll_tokens.clear()

    def close(self) -> None:
        """Cancel the batch and discard its jobs"""
        self.cancel()
        self._generation += 1
        self._batch_token = CancellationToken("batch")
        self._upload = None
        self._auto_start_triggered = False
        self.store.update(
            jobs=[],
            step=FlowStep.UPLOAD,
            is_generating=False,
            error=None,
            has_upload=False,
        )


def create_orchestrator(
    client: Optional[PresetGenerationClient] = None,
    gallery: Optional[GalleryClient] = None,
    tracker: Optional[GenerationJobTracker] = None,
    options: Optional[SubmissionOptions] = None,
    auto_start: Optional[bool] = None,
) -> PresetGenerationOrchestrator:
    """Build an orchestrator wired to the configured remote service"""
    client = client or PresetGenerationClient()
    return PresetGenerationOrchestrator(
        submitter=JobSubmitter(client, options),
        poller=StatusPoller(client),
        sink=ResultSink(gallery or InMemoryGallery()),
        tracker=tracker,
        auto_start=auto_start,
    )
