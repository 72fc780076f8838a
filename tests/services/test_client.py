"""
Unit tests for the remote generation client with a mocked aiohttp session.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from stylebatch.core.exceptions import JobPollingError, JobSubmissionError
from stylebatch.services.preset_generation.client import (
    GENERIC_FAILURE_MESSAGE,
    PLAN_LIMIT_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    PresetGenerationClient,
    resolve_api_error_message,
)
from tests.factories import ImageUploadFactory


def mock_response(status=200, payload=None):
    response = MagicMock()
    response.status = status
    response.ok = status < 400
    response.json = AsyncMock(return_value=payload)
    return response


def request_context(response):
    context = MagicMock()
    context.__aenter__.return_value = response
    context.__aexit__.return_value = False
    return context


@pytest.fixture
def session():
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    return session


@pytest.fixture
def client(session):
    async def token_provider():
        return "secret-token"

    client = PresetGenerationClient(base_url="https://studio.example.com/", token_provider=token_provider)
    client.session = session
    return client


@pytest.fixture
def no_retry_wait():
    with patch.object(PresetGenerationClient._get_json.retry, "sleep", AsyncMock()) as sleep:
        yield sleep


@pytest.mark.unit
class TestResolveApiErrorMessage:

    @pytest.mark.parametrize(
        "status, message, expected",
        [
            (401, None, SESSION_EXPIRED_MESSAGE),
            (500, "Token expired for user", SESSION_EXPIRED_MESSAGE),
            (402, None, PLAN_LIMIT_MESSAGE),
            (429, "slow down", PLAN_LIMIT_MESSAGE),
            (400, "You are out of credits", PLAN_LIMIT_MESSAGE),
            (400, "  Style option not found ", "Style option not found"),
            (500, None, GENERIC_FAILURE_MESSAGE),
            (None, "", GENERIC_FAILURE_MESSAGE),
        ],
    )
    def test_messages(self, status, message, expected):
        assert resolve_api_error_message(status, message) == expected

    def test_fallback_is_used_for_empty_message(self):
        assert resolve_api_error_message(500, None, "Upload failed.") == "Upload failed."


@pytest.mark.unit
class TestSubmitJob:

    @pytest.mark.asyncio
    async def test_submit_posts_multipart_with_auth(self, client, session):
        session.post.return_value = request_context(mock_response(payload={"jobId": "job-1"}))

        payload = await client.submit_job({"styleOptionId": "noir"}, ImageUploadFactory.build())

        assert payload == {"jobId": "job-1"}
        args, kwargs = session.post.call_args
        assert args[0] == "https://studio.example.com/api/scene/generate"
        assert isinstance(kwargs["data"], aiohttp.FormData)
        assert kwargs["headers"] == {"Authorization": "Bearer secret-token"}

    @pytest.mark.asyncio
    async def test_rejected_submit_maps_error_message(self, client, session):
        session.post.return_value = request_context(mock_response(402, {"message": "Plan limit reached"}))

        with pytest.raises(JobSubmissionError) as exc_info:
            await client.submit_job({}, ImageUploadFactory.build())

        assert exc_info.value.message == PLAN_LIMIT_MESSAGE

    @pytest.mark.asyncio
    async def test_rejected_submit_keeps_server_message(self, client, session):
        session.post.return_value = request_context(mock_response(400, {"message": "Unsupported style"}))

        with pytest.raises(JobSubmissionError, match="Unsupported style"):
            await client.submit_job({}, ImageUploadFactory.build())

    @pytest.mark.asyncio
    async def test_network_error_is_not_retried(self, client, session):
        session.post.side_effect = aiohttp.ClientConnectionError("connection refused")

        with pytest.raises(JobSubmissionError, match="connection refused"):
            await client.submit_job({}, ImageUploadFactory.build())

        assert session.post.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_raises_submission_error(self, client, session):
        session.post.side_effect = asyncio.TimeoutError()

        with pytest.raises(JobSubmissionError, match="timed out"):
            await client.submit_job({}, ImageUploadFactory.build())


@pytest.mark.unit
class TestFetchJob:

    @pytest.mark.asyncio
    async def test_fetch_job_gets_status_document(self, client, session):
        session.get.return_value = request_context(mock_response(payload={"id": "job-1", "status": "running"}))

        payload = await client.fetch_job("job-1")

        assert payload == {"id": "job-1", "status": "running"}
        args, kwargs = session.get.call_args
        assert args[0] == "https://studio.example.com/api/jobs/job-1"

    @pytest.mark.asyncio
    async def test_non_json_body_becomes_empty_document(self, client, session):
        response = mock_response()
        response.json = AsyncMock(side_effect=ValueError("not json"))
        session.get.return_value = request_context(response)

        assert await client.fetch_job("job-1") == {}

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, client, session, no_retry_wait):
        session.get.side_effect = [
            aiohttp.ClientConnectionError("reset"),
            request_context(mock_response(payload={"id": "job-1", "status": "done"})),
        ]

        payload = await client.fetch_job("job-1")

        assert payload["status"] == "done"
        assert session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_persistent_connection_errors_raise_polling_error(self, client, session, no_retry_wait):
        session.get.side_effect = aiohttp.ClientConnectionError("reset")

        with pytest.raises(JobPollingError, match="Status check failed"):
            await client.fetch_job("job-1")

        assert session.get.call_count == 3

    @pytest.mark.asyncio
    async def test_error_status_is_not_retried(self, client, session, no_retry_wait):
        session.get.return_value = request_context(mock_response(401, {"message": "Unauthorized"}))

        with pytest.raises(JobPollingError) as exc_info:
            await client.fetch_job("job-1")

        assert exc_info.value.message == SESSION_EXPIRED_MESSAGE
        assert session.get.call_count == 1


@pytest.mark.unit
class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_close_releases_session(self, client, session):
        await client.close()

        session.close.assert_awaited_once()
        assert client.session is None

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes_session(self):
        async with PresetGenerationClient(base_url="https://studio.example.com") as client:
            assert client.session is not None
            assert not client.session.closed

        assert client.session is None

    @pytest.mark.asyncio
    async def test_empty_token_sends_no_auth_header(self):
        async def no_token():
            return ""

        client = PresetGenerationClient(token_provider=no_token)

        assert await client._auth_headers() == {}
