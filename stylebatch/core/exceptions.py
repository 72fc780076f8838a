from fastapi import Request, status
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class StyleBatchException(Exception):
    """Base exception for StyleBatch application"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class InputValidationError(StyleBatchException):
    """Raised when the uploaded image or batch input is rejected"""
    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class BatchNotFoundError(StyleBatchException):
    """Raised when a batch is not found"""
    def __init__(self, message: str = "Batch not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class BatchConflictError(StyleBatchException):
    """Raised when a batch operation conflicts with its current state"""
    def __init__(self, message: str = "Batch is already generating"):
        super().__init__(message, status.HTTP_409_CONFLICT)


class PresetGenerationError(StyleBatchException):
    """Base error for a single preset generation job"""
    def __init__(self, message: str = "Preset generation failed."):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)


class JobSubmissionError(PresetGenerationError):
    """Raised when the remote service does not accept a job"""
    pass


class JobPollingError(PresetGenerationError):
    """Raised when the job status cannot be retrieved or the job failed remotely"""
    pass


class ResultExtractionError(PresetGenerationError):
    """Raised when a completed job carries no usable result"""
    pass


class JobCancelledError(Exception):
    """Raised when a job is interrupted by its cancellation token.

    Not a StyleBatchException: cancellation is a control signal, never a
    job failure.
    """
    def __init__(self, job_id: str = None):
        self.job_id = job_id
        super().__init__(f"Job {job_id} was cancelled" if job_id else "Cancelled")


async def stylebatch_exception_handler(request: Request, exc: StyleBatchException):
    """Handle custom StyleBatch exceptions"""
    logger.error(f"StyleBatch exception: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )
