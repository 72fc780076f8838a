"""
Job submission for style preset generation
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from stylebatch.core.config import settings
from stylebatch.core.exceptions import JobSubmissionError
from stylebatch.schemas.preset_generation import StyleDescriptor
from .cancellation import CancellationToken
from .client import ImageUpload, PresetGenerationClient

logger = logging.getLogger(__name__)

JOB_ID_KEYS = ("jobId", "job_id", "id")


class RenderingSpeed(str, Enum):
    DEFAULT = "DEFAULT"
    TURBO = "TURBO"


class CharacterFocus(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    SQUARE = "square"


@dataclass
class SubmissionOptions:
    """Fixed generation parameters shared by every job of a batch"""
    style_type: str = field(default_factory=lambda: settings.DEFAULT_STYLE_TYPE)
    scene_template_id: Optional[str] = None
    style_preset: Optional[str] = None
    rendering_speed: Optional[RenderingSpeed] = None
    personalization_note: Optional[str] = None
    character_focus: Optional[CharacterFocus] = None

    def to_form_fields(self) -> Dict[str, str]:
        fields = {
            "sceneTemplateId": self.scene_template_id,
            "stylePreset": self.style_preset,
            "renderingSpeed": self.rendering_speed.value if self.rendering_speed else None,
            "personalizationNote": self.personalization_note,
            "characterFocus": self.character_focus.value if self.character_focus else None,
            "styleType": self.style_type,
        }
        return {name: value for name, value in fields.items() if value}


def parse_job_id(payload: Dict[str, Any]) -> Optional[str]:
    for key in JOB_ID_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class JobSubmitter:
    """Turns one style and the shared image into a remote generation job"""

    def __init__(self, client: PresetGenerationClient, options: Optional[SubmissionOptions] = None):
        self.client = client
        self.options = options or SubmissionOptions()

    async def submit(
        self,
        style: StyleDescriptor,
        image: ImageUpload,
        token: Optional[CancellationToken] = None,
    ) -> str:
        """Submit a job for ``style`` and return its remote job id.

        Raises JobSubmissionError when the request fails or no job id comes
        back, and JobCancelledError when ``token`` fires first.
        """
        fields = self.options.to_form_fields()
        fields["styleOptionId"] = style.id

        request = self.client.submit_job(fields, image)
        payload = await token.run(request) if token else await request

        job_id = parse_job_id(payload or {})
        if not job_id:
            raise JobSubmissionError("Generation request did not return a job id.")

        logger.info(f"Preset generation started for style {style.id}: {job_id}")
        return job_id
