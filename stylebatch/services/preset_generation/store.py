"""
Observable store for batch state
"""

import logging
from typing import Any, Callable, List, Optional

from stylebatch.schemas.preset_generation import BatchState, GenerationJob

logger = logging.getLogger(__name__)

StateListener = Callable[[BatchState], None]


class BatchStateStore:
    """Holds the current BatchState and notifies listeners on every change.

    State is never mutated in place: each change replaces the whole
    BatchState (and its job tuple) with a new value.
    """

    def __init__(self):
        self._state = BatchState()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> BatchState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> BatchState:
        if "jobs" in changes:
            changes["jobs"] = tuple(changes["jobs"])
        self._state = self._state.model_copy(update=changes)
        self._publish()
        return self._state

    def update_job(
        self,
        index: int,
        mutate: Callable[[GenerationJob], GenerationJob],
    ) -> Optional[GenerationJob]:
        """Replace the job at ``index`` with ``mutate(job)``.

        Returns the new record, or None if there is no job at ``index``.
        Nothing is published when ``mutate`` returns the record unchanged.
        """
        jobs = list(self._state.jobs)
        if not 0 <= index < len(jobs):
            return None

        job = jobs[index]
        updated = mutate(job)
        if updated is job:
            return job
        jobs[index] = updated
        self.update(jobs=jobs)
        return updated

    def _publish(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Batch state listener failed: {e}")
