"""
Preset Generation Services Package

Runs a batch of style preset generations against the remote scene
generation service: job submission, status polling, result extraction and
the orchestrator that ties them together.
"""

from .cancellation import CancellationToken
from .client import ImageUpload, PresetGenerationClient
from .submitter import JobSubmitter, SubmissionOptions
from .poller import StatusPoller, normalize_job_status
from .result_sink import InMemoryGallery, ResultSink
from .tracker import InMemoryJobTracker
from .store import BatchStateStore
from .orchestrator import PresetGenerationOrchestrator, create_orchestrator

__all__ = [
    "CancellationToken",
    "ImageUpload",
    "PresetGenerationClient",
    "JobSubmitter",
    "SubmissionOptions",
    "StatusPoller",
    "normalize_job_status",
    "InMemoryGallery",
    "ResultSink",
    "InMemoryJobTracker",
    "BatchStateStore",
    "PresetGenerationOrchestrator",
    "create_orchestrator",
]
