"""
Cross-cutting registry of remote jobs that are currently in flight
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from stylebatch.schemas.preset_generation import JobStatusSnapshot

logger = logging.getLogger(__name__)


class GenerationJobTracker(Protocol):
    def enqueue(self, job_id: str, prompt: str, model: str) -> None:
        ...

    def update(self, job_id: str, snapshot: JobStatusSnapshot) -> None:
        ...

    def finalize(self, job_id: str) -> None:
        ...


@dataclass
class ActiveJob:
    job_id: str
    prompt: str
    model: str
    status: str = "queued"
    progress: float = 1.0
    backend_progress: Optional[float] = 0.0
    backend_progress_updated_at: float = field(default_factory=time.time)
    started_at: float = field(default_factory=time.time)


class InMemoryJobTracker:
    """Keeps active jobs in a dict keyed by remote job id"""

    def __init__(self):
        self.active_jobs: Dict[str, ActiveJob] = {}

    def enqueue(self, job_id: str, prompt: str, model: str) -> None:
        self.active_jobs[job_id] = ActiveJob(job_id=job_id, prompt=prompt, model=model)
        logger.debug(f"Tracking job {job_id} ({model})")

    def update(self, job_id: str, snapshot: JobStatusSnapshot) -> None:
        active = self.active_jobs.get(job_id)
        if active is None:
            return

        active.status = snapshot.status.value
        if snapshot.progress is not None:
            progress = max(0.0, min(100.0, snapshot.progress))
            active.progress = progress
            active.backend_progress = progress
            active.backend_progress_updated_at = time.time()

    def finalize(self, job_id: str) -> None:
        self.active_jobs.pop(job_id, None)
