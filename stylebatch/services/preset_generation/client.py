"""
HTTP client for the remote preset generation service

Wraps the two endpoints the batch flow depends on: multipart job submission
and job status lookup.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from stylebatch.core.config import settings
from stylebatch.core.exceptions import JobPollingError, JobSubmissionError

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]

SESSION_EXPIRED_MESSAGE = "Your session expired. Log back in to continue."
PLAN_LIMIT_MESSAGE = "You've hit your plan limit. Upgrade or try a lower-cost model."
GENERIC_FAILURE_MESSAGE = "We couldn't complete that request. Try again in a moment."

SESSION_EXPIRED_PATTERNS = ["session expired", "token expired", "unauthorized", "not authenticated"]
PLAN_LIMIT_PATTERNS = ["plan limit", "out of credits", "insufficient credit", "quota"]


@dataclass(frozen=True)
class ImageUpload:
    """The shared input image for a batch"""
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def resolve_api_error_message(status: Optional[int], message: Optional[str], fallback: Optional[str] = None) -> str:
    """Map a failed generation response to a message suitable for display"""
    normalized = (message or "").strip()
    lower = normalized.lower()

    if status == 401 or any(pattern in lower for pattern in SESSION_EXPIRED_PATTERNS):
        return SESSION_EXPIRED_MESSAGE

    if status in (402, 403, 429) or any(pattern in lower for pattern in PLAN_LIMIT_PATTERNS):
        return PLAN_LIMIT_MESSAGE

    if normalized:
        return normalized

    return fallback or GENERIC_FAILURE_MESSAGE


async def static_token_provider() -> str:
    """Default token provider returning the configured API token"""
    return settings.API_TOKEN


class PresetGenerationClient:
    """Async client for the scene generation and job status endpoints"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token_provider = token_provider or static_token_provider
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": settings.USER_AGENT, "Accept": "application/json"},
            )
        return self.session

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self.token_provider()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> Optional[Dict[str, Any]]:
        try:
            payload = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return None
        return payload if isinstance(payload, dict) else None

    async def submit_job(self, fields: Dict[str, str], image: ImageUpload) -> Dict[str, Any]:
        """POST a generation request as multipart form data"""
        form = aiohttp.FormData()
        for name, value in fields.items():
            form.add_field(name, value)
        form.add_field(
            "characterImage",
            image.content,
            filename=image.filename,
            content_type=image.content_type,
        )

        session = self._ensure_session()
        url = self._url(settings.SUBMIT_PATH)
        headers = await self._auth_headers()

        logger.debug(f"Submitting generation request to {url}")

        try:
            async with session.post(url, data=form, headers=headers) as response:
                payload = await self._read_json(response)
                if not response.ok:
                    message = payload.get("message") if payload else None
                    raise JobSubmissionError(
                        resolve_api_error_message(response.status, message if isinstance(message, str) else None)
                    )
                return payload or {}
        except aiohttp.ClientError as e:
            logger.error(f"Generation request failed: {e}")
            raise JobSubmissionError(f"Generation request failed: {e}")
        except asyncio.TimeoutError:
            logger.error(f"Generation request to {url} timed out")
            raise JobSubmissionError("Generation request timed out.")

    @retry(
        stop=stop_after_attempt(settings.POLL_REQUEST_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((aiohttp.ClientConnectionError, asyncio.TimeoutError)),
        reraise=True,
    )
    async def _get_json(self, url: str) -> Dict[str, Any]:
        session = self._ensure_session()
        headers = await self._auth_headers()
        async with session.get(url, headers=headers) as response:
            payload = await self._read_json(response)
            if not response.ok:
                message = payload.get("message") if payload else None
                raise JobPollingError(
                    resolve_api_error_message(response.status, message if isinstance(message, str) else None)
                )
            return payload or {}

    async def fetch_job(self, job_id: str) -> Dict[str, Any]:
        """GET the raw job document for ``job_id``"""
        url = self._url(settings.JOB_STATUS_PATH.format(job_id=job_id))
        try:
            return await self._get_json(url)
        except aiohttp.ClientError as e:
            logger.error(f"Status check failed for job {job_id}: {e}")
            raise JobPollingError(f"Status check failed: {e}")
        except asyncio.TimeoutError:
            logger.error(f"Status check for job {job_id} timed out")
            raise JobPollingError("Status check timed out.")
