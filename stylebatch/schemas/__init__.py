from .preset_generation import (
    BatchState,
    FlowStep,
    GalleryImage,
    GenerationJob,
    GenerationResult,
    GenerationTemplate,
    JobStatus,
    JobStatusPayload,
    JobStatusSnapshot,
    SnapshotStatus,
    StyleDescriptor,
)

__all__ = [
    "BatchState",
    "FlowStep",
    "GalleryImage",
    "GenerationJob",
    "GenerationResult",
    "GenerationTemplate",
    "JobStatus",
    "JobStatusPayload",
    "JobStatusSnapshot",
    "SnapshotStatus",
    "StyleDescriptor",
]
