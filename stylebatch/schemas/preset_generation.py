"""
Data shapes for style preset batch generation
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """Per-style job status within a batch"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SnapshotStatus(str, Enum):
    """Normalized remote job status"""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FlowStep(str, Enum):
    UPLOAD = "upload"
    GENERATING = "generating"
    RESULTS = "results"


_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.RUNNING: 1,
    JobStatus.SUCCEEDED: 2,
    JobStatus.FAILED: 2,
}

TERMINAL_SNAPSHOT_STATUSES = (SnapshotStatus.COMPLETED, SnapshotStatus.FAILED)


class StyleDescriptor(BaseModel):
    """A style preset selected by the user"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    prompt: Optional[str] = None
    image_url: Optional[str] = None


class JobStatusPayload(BaseModel):
    """Raw job document returned by the status endpoint"""
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: Optional[str] = None
    status: Optional[Any] = None
    progress: Optional[Any] = None
    error: Optional[Any] = None
    result_url: Optional[Any] = Field(default=None, alias="resultUrl")
    metadata: Optional[Any] = None

    @property
    def metadata_fields(self) -> Dict[str, Any]:
        """``metadata`` when it is an object, otherwise an empty dict"""
        return self.metadata if isinstance(self.metadata, dict) else {}


class JobStatusSnapshot(BaseModel):
    """One normalized poll result"""
    model_config = ConfigDict(frozen=True)

    status: SnapshotStatus
    job: JobStatusPayload = Field(default_factory=JobStatusPayload)
    progress: Optional[float] = None
    stage: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SNAPSHOT_STATUSES


class GenerationTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    style_option_id: Optional[str] = None


class GenerationResult(BaseModel):
    """Normalized payload of a successful generation"""
    model_config = ConfigDict(frozen=True)

    template: GenerationTemplate
    prompt: str
    image_url: str
    r2_file_id: Optional[str] = None
    mime_type: Optional[str] = None
    provider_response: JobStatusSnapshot


class GalleryImage(BaseModel):
    """Entry appended to the user's gallery"""
    url: str
    prompt: str
    model: str
    timestamp: str
    r2_file_id: Optional[str] = None


class GenerationJob(BaseModel):
    """State of one style's job within a batch.

    Records are immutable; every change goes through ``advance`` which
    returns a new record and refuses backward status transitions.
    """
    model_config = ConfigDict(frozen=True)

    style: StyleDescriptor
    status: JobStatus = JobStatus.PENDING
    job_id: Optional[str] = None
    progress: Optional[float] = None
    snapshot: Optional[JobStatusSnapshot] = None
    response: Optional[GenerationResult] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.SUCCEEDED, JobStatus.FAILED)

    def advance(self, **changes: Any) -> "GenerationJob":
        status = changes.get("status", self.status)
        if self.is_terminal and status != self.status:
            raise ValueError(f"Job for style {self.style.id} is already {self.status.value}")
        if _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            raise ValueError(f"Cannot move job from {self.status.value} to {status.value}")

        job_id = changes.get("job_id", self.job_id)
        if self.job_id is not None and job_id != self.job_id:
            raise ValueError(f"Job id is already set to {self.job_id}")

        return self.model_copy(update=changes)


class BatchState(BaseModel):
    """Published view of a batch"""
    model_config = ConfigDict(frozen=True)

    jobs: Tuple[GenerationJob, ...] = ()
    step: FlowStep = FlowStep.UPLOAD
    is_generating: bool = False
    error: Optional[str] = None
    has_upload: bool = False

    @property
    def succeeded_count(self) -> int:
        return sum(1 for job in self.jobs if job.status == JobStatus.SUCCEEDED)
