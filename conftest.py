import pytest

from stylebatch.services.preset_generation.orchestrator import PresetGenerationOrchestrator
from stylebatch.services.preset_generation.poller import StatusPoller
from stylebatch.services.preset_generation.result_sink import InMemoryGallery, ResultSink
from stylebatch.services.preset_generation.submitter import JobSubmitter
from stylebatch.services.preset_generation.tracker import InMemoryJobTracker
from tests.fakes import FakeGenerationClient


@pytest.fixture
def fake_client():
    return FakeGenerationClient()


@pytest.fixture
def gallery():
    return InMemoryGallery()


@pytest.fixture
def tracker():
    return InMemoryJobTracker()


@pytest.fixture
def build_orchestrator(fake_client, gallery, tracker):
    """Build orchestrators wired to the fake client with fast polling."""
    def _build(client=None, **kwargs):
        client = client or fake_client
        kwargs.setdefault("auto_start", False)
        return PresetGenerationOrchestrator(
            submitter=JobSubmitter(client),
            poller=StatusPoller(client, interval=0.01, timeout=5),
            sink=ResultSink(gallery, model_tag="ideogram-remix"),
            tracker=tracker,
            **kwargs,
        )
    return _build


@pytest.fixture
def orchestrator(build_orchestrator):
    return build_orchestrator()
