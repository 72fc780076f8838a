import asyncio

import pytest

from stylebatch.core.exceptions import JobCancelledError, JobSubmissionError
from stylebatch.services.preset_generation.cancellation import CancellationToken
from stylebatch.services.preset_generation.submitter import (
    CharacterFocus,
    JobSubmitter,
    RenderingSpeed,
    SubmissionOptions,
    parse_job_id,
)
from tests.factories import ImageUploadFactory, StyleDescriptorFactory


@pytest.mark.unit
class TestSubmissionOptions:

    def test_defaults_send_only_style_type(self):
        assert SubmissionOptions().to_form_fields() == {"styleType": "AUTO"}

    def test_optional_fields_are_included_when_set(self):
        options = SubmissionOptions(
            style_type="REALISTIC",
            scene_template_id="tpl-9",
            rendering_speed=RenderingSpeed.TURBO,
            personalization_note="make it moody",
            character_focus=CharacterFocus.PORTRAIT,
        )

        assert options.to_form_fields() == {
            "sceneTemplateId": "tpl-9",
            "renderingSpeed": "TURBO",
            "personalizationNote": "make it moody",
            "characterFocus": "portrait",
            "styleType": "REALISTIC",
        }


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"jobId": "abc"}, "abc"),
        ({"job_id": " def "}, "def"),
        ({"id": "ghi"}, "ghi"),
        ({"jobId": "", "id": "fallback"}, "fallback"),
        ({"jobId": 12}, None),
        ({}, None),
    ],
)
def test_parse_job_id(payload, expected):
    assert parse_job_id(payload) == expected


@pytest.mark.unit
class TestJobSubmitter:

    @pytest.mark.asyncio
    async def test_submit_returns_job_id_and_sends_style(self, fake_client):
        fake_client.submit_results.append({"jobId": "job-77", "status": "queued"})
        style = StyleDescriptorFactory.build(id="watercolor")
        image = ImageUploadFactory.build()

        job_id = await JobSubmitter(fake_client).submit(style, image)

        assert job_id == "job-77"
        assert fake_client.submissions == [{"styleType": "AUTO", "styleOptionId": "watercolor"}]

    @pytest.mark.asyncio
    async def test_missing_job_id_raises(self, fake_client):
        fake_client.submit_results.append({"status": "queued"})

        with pytest.raises(JobSubmissionError, match="did not return a job id"):
            await JobSubmitter(fake_client).submit(StyleDescriptorFactory.build(), ImageUploadFactory.build())

    @pytest.mark.asyncio
    async def test_client_errors_propagate(self, fake_client):
        fake_client.submit_results.append(JobSubmissionError("You've hit your plan limit."))

        with pytest.raises(JobSubmissionError, match="plan limit"):
            await JobSubmitter(fake_client).submit(StyleDescriptorFactory.build(), ImageUploadFactory.build())

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_request(self, fake_client):
        fake_client.submit_results.append({"jobId": "job-1"})
        token = CancellationToken("batch")
        token.cancel()

        with pytest.raises(JobCancelledError):
            await JobSubmitter(fake_client).submit(
                StyleDescriptorFactory.build(), ImageUploadFactory.build(), token=token
            )

        assert fake_client.submissions == []

    @pytest.mark.asyncio
    async def test_cancel_during_submit_raises_cancelled(self):
        started = asyncio.Event()

        class SlowClient:
            async def submit_job(self, fields, image):
                started.set()
                await asyncio.sleep(3600)

        token = CancellationToken("batch")
        submit = asyncio.ensure_future(
            JobSubmitter(SlowClient()).submit(StyleDescriptorFactory.build(), ImageUploadFactory.build(), token=token)
        )
        await started.wait()
        token.cancel()

        with pytest.raises(JobCancelledError):
            await asyncio.wait_for(submit, timeout=1)
