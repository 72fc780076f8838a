"""
Result extraction and gallery forwarding for completed jobs
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Protocol

from stylebatch.core.config import settings
from stylebatch.core.exceptions import ResultExtractionError
from stylebatch.schemas.preset_generation import (
    GalleryImage,
    GenerationResult,
    GenerationTemplate,
    JobStatusSnapshot,
    StyleDescriptor,
)

logger = logging.getLogger(__name__)

MISSING_IMAGE_MESSAGE = "Job completed without a generated image."


class GalleryClient(Protocol):
    async def add_image(self, image: GalleryImage) -> None:
        ...


class InMemoryGallery:
    """Gallery collaborator that keeps appended images in a list"""

    def __init__(self):
        self.images: List[GalleryImage] = []

    async def add_image(self, image: GalleryImage) -> None:
        self.images.append(image)


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class ResultSink:
    """Last validation gate before a generation result is trusted"""

    def __init__(self, gallery: GalleryClient, model_tag: Optional[str] = None):
        self.gallery = gallery
        self.model_tag = model_tag or settings.GENERATION_MODEL_TAG

    def finalize(self, style: StyleDescriptor, snapshot: JobStatusSnapshot) -> GenerationResult:
        metadata = snapshot.job.metadata_fields
        template_meta = metadata.get("template")
        if not isinstance(template_meta, dict):
            template_meta = {}

        template = GenerationTemplate(
            id=_string_or_none(template_meta.get("id")) or style.id,
            title=_string_or_none(template_meta.get("title")) or style.name,
            style_option_id=_string_or_none(template_meta.get("styleOptionId")) or style.id,
        )

        image_url = _string_or_none(metadata.get("fileUrl")) or _string_or_none(snapshot.job.result_url)
        if not image_url:
            raise ResultExtractionError(MISSING_IMAGE_MESSAGE)

        return GenerationResult(
            template=template,
            prompt=_string_or_none(metadata.get("prompt")) or "",
            image_url=image_url,
            r2_file_id=_string_or_none(metadata.get("r2FileId")),
            mime_type=_string_or_none(metadata.get("mimeType")),
            provider_response=snapshot,
        )

    async def forward(self, result: GenerationResult) -> bool:
        """Append ``result`` to the gallery. Failures are logged, never raised."""
        image = GalleryImage(
            url=result.image_url,
            prompt=result.prompt,
            model=self.model_tag,
            timestamp=datetime.now(timezone.utc).isoformat(),
            r2_file_id=result.r2_file_id,
        )
        try:
            await self.gallery.add_image(image)
        except Exception as e:
            logger.error(f"Failed to add generated image {result.image_url} to gallery: {e}")
            return False
        return True
