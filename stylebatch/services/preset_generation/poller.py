"""
Status polling for remote generation jobs
"""

import logging
import math
import re
import time
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from stylebatch.core.config import settings
from stylebatch.core.exceptions import JobPollingError
from stylebatch.schemas.preset_generation import JobStatusPayload, JobStatusSnapshot, SnapshotStatus
from .cancellation import CancellationToken
from .client import PresetGenerationClient

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[JobStatusSnapshot], None]

QUEUED_STATUSES = {"PENDING", "QUEUED", "SCHEDULED", "SUBMITTED"}
RUNNING_STATUSES = {"PROCESSING", "RUNNING", "IN_PROGRESS", "PROCESS", "STARTED", "EXECUTING"}
COMPLETED_STATUSES = {"COMPLETED", "SUCCEEDED", "DONE", "FINISHED", "SUCCESS"}

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)")


def normalize_job_status(status: Any) -> SnapshotStatus:
    """Collapse the provider's status vocabulary into four states.

    Missing statuses count as queued; anything unrecognized counts as failed.
    """
    if status is None or status == "":
        return SnapshotStatus.QUEUED

    normalized = str(status).strip().upper()

    if normalized in QUEUED_STATUSES:
        return SnapshotStatus.QUEUED
    if normalized in RUNNING_STATUSES:
        return SnapshotStatus.RUNNING
    if normalized in COMPLETED_STATUSES:
        return SnapshotStatus.COMPLETED
    return SnapshotStatus.FAILED


def _parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value.strip().rstrip("%"))
        if match:
            return float(match.group(0))
    return None


def parse_progress(job: JobStatusPayload) -> Optional[float]:
    metadata = job.metadata_fields
    for candidate in (job.progress, metadata.get("progress"), metadata.get("percentComplete")):
        parsed = _parse_number(candidate)
        if parsed is not None:
            return parsed
    return None


def parse_stage(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    if not metadata:
        return None
    for key in ("stage", "Stage", "currentStage"):
        value = metadata.get(key)
        if value is not None:
            return value if isinstance(value, str) else None
    return None


def build_snapshot(raw: Dict[str, Any]) -> JobStatusSnapshot:
    try:
        job = JobStatusPayload.model_validate(raw or {})
    except ValidationError as e:
        raise JobPollingError(f"Malformed job status response: {e.error_count()} invalid field(s)")

    return JobStatusSnapshot(
        status=normalize_job_status(job.status),
        job=job,
        progress=parse_progress(job),
        stage=parse_stage(job.metadata_fields),
    )


class StatusPoller:
    """Polls one job until it reaches a terminal state"""

    def __init__(
        self,
        client: PresetGenerationClient,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
        self.timeout = settings.POLL_TIMEOUT_SECONDS if timeout is None else timeout

    async def poll(
        self,
        job_id: str,
        token: CancellationToken,
        on_update: Optional[SnapshotCallback] = None,
    ) -> JobStatusSnapshot:
        """
        Poll ``job_id`` until it completes or fails

        Args:
            job_id: Remote job identifier
            token: Cancellation token checked before every request and wait
            on_update: Called synchronously with every snapshot, terminal included

        Returns:
            The terminal snapshot

        Raises:
            JobCancelledError: the token fired
            JobPollingError: the status request failed or polling timed out
        """
        started_at = time.monotonic()

        while True:
            token.raise_if_cancelled()

            if time.monotonic() - started_at > self.timeout:
                raise JobPollingError("Job polling timeout")

            raw = await token.run(self.client.fetch_job(job_id))
            snapshot = build_snapshot(raw)

            if on_update:
                on_update(snapshot)

            if snapshot.is_terminal:
                logger.info(f"Job {job_id} finished with status {snapshot.status.value}")
                return snapshot

            logger.debug(f"Job {job_id} still {snapshot.status.value} (progress: {snapshot.progress})")
            await token.sleep(self.interval)
