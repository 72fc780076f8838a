"""
API endpoints for style preset batches
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from pydantic import BaseModel, Field

from stylebatch.core.exceptions import BatchConflictError, InputValidationError
from stylebatch.schemas.preset_generation import BatchState, StyleDescriptor
from stylebatch.services.preset_generation.client import ImageUpload
from stylebatch.services.preset_generation.orchestrator import NO_UPLOAD_MESSAGE
from stylebatch.services.preset_generation.registry import BatchRegistry, get_batch_registry

logger = logging.getLogger(__name__)

router = APIRouter()


class OpenBatchRequest(BaseModel):
    """API model for opening a batch"""
    styles: List[StyleDescriptor] = Field(..., min_length=1, description="Style presets to apply")


class BatchResponse(BaseModel):
    batch_id: str
    state: BatchState


@router.post("", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
async def open_batch(
    request: OpenBatchRequest,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """Open a batch with one pending job per style"""
    batch_id, orchestrator = registry.open(request.styles)
    return BatchResponse(batch_id=batch_id, state=orchestrator.state)


@router.get("/{batch_id}", response_model=BatchResponse)
async def get_batch(
    batch_id: str,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """Current state of a batch"""
    orchestrator = registry.get(batch_id)
    return BatchResponse(batch_id=batch_id, state=orchestrator.state)


@router.post("/{batch_id}/image", response_model=BatchResponse)
async def upload_image(
    batch_id: str,
    image: UploadFile = File(...),
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """Attach the input photo to a batch"""
    orchestrator = registry.get(batch_id)
    # one byte past the ceiling is enough for the size check to reject it
    upload = ImageUpload(
        filename=image.filename or "upload",
        content_type=image.content_type or "",
        content=await image.read(orchestrator.max_upload_bytes + 1),
    )

    if not orchestrator.select_image(upload):
        raise InputValidationError(orchestrator.error)

    return BatchResponse(batch_id=batch_id, state=orchestrator.state)


@router.post("/{batch_id}/start", response_model=BatchResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_batch(
    batch_id: str,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """Start generating in the background"""
    orchestrator = registry.get(batch_id)

    if orchestrator.is_generating or (orchestrator.task and not orchestrator.task.done()):
        raise BatchConflictError()
    if orchestrator.upload is None:
        raise InputValidationError(NO_UPLOAD_MESSAGE)

    orchestrator.start_in_background()
    logger.info(f"Generation started for batch {batch_id}")
    return BatchResponse(batch_id=batch_id, state=orchestrator.state)


@router.post("/{batch_id}/cancel", response_model=BatchResponse)
async def cancel_batch(
    batch_id: str,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """Stop scheduling jobs and end active polls; job records are kept"""
    orchestrator = registry.get(batch_id)
    orchestrator.cancel()
    return BatchResponse(batch_id=batch_id, state=orchestrator.state)


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_batch(
    batch_id: str,
    registry: BatchRegistry = Depends(get_batch_registry),
):
    """Cancel and discard a batch"""
    registry.close(batch_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
