"""
In-process registry of open preset batches
"""

import logging
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from stylebatch.core.exceptions import BatchNotFoundError
from stylebatch.schemas.preset_generation import StyleDescriptor
from .client import PresetGenerationClient
from .orchestrator import PresetGenerationOrchestrator, create_orchestrator

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[PresetGenerationClient], PresetGenerationOrchestrator]


class BatchRegistry:
    """Maps batch ids to their orchestrators; all batches share one HTTP client"""

    def __init__(
        self,
        client: Optional[PresetGenerationClient] = None,
        factory: Optional[OrchestratorFactory] = None,
    ):
        self.client = client or PresetGenerationClient()
        self.factory = factory or (lambda client: create_orchestrator(client=client))
        self._batches: Dict[str, PresetGenerationOrchestrator] = {}

    def __len__(self) -> int:
        return len(self._batches)

    def open(self, styles: List[StyleDescriptor]) -> Tuple[str, PresetGenerationOrchestrator]:
        batch_id = str(uuid.uuid4())
        orchestrator = self.factory(self.client)
        orchestrator.open_for_styles(styles)
        self._batches[batch_id] = orchestrator
        logger.info(f"Registered preset batch {batch_id}")
        return batch_id, orchestrator

    def get(self, batch_id: str) -> PresetGenerationOrchestrator:
        orchestrator = self._batches.get(batch_id)
        if orchestrator is None:
            raise BatchNotFoundError(f"Batch {batch_id} not found")
        return orchestrator

    def close(self, batch_id: str) -> None:
        orchestrator = self._batches.pop(batch_id, None)
        if orchestrator is None:
            raise BatchNotFoundError(f"Batch {batch_id} not found")
        orchestrator.close()
        logger.info(f"Closed preset batch {batch_id}")

    async def close_all(self) -> None:
        for orchestrator in self._batches.values():
            orchestrator.close()
        self._batches.clear()
        await self.client.close()


_batch_registry: Optional[BatchRegistry] = None


def get_batch_registry() -> BatchRegistry:
    """Get global batch registry instance"""
    global _batch_registry

    if _batch_registry is None:
        _batch_registry = BatchRegistry()

    return _batch_registry


async def close_batch_registry():
    """Close global batch registry"""
    global _batch_registry

    if _batch_registry:
        await _batch_registry.close_all()
        _batch_registry = None
