from __future__ import annotations

import time
from threading import RLock
from typing import Callable, Dict, List, Optional

from tourbooking.services.submission_service import SubmissionController


class DraftStore:
    """Thread-safe in-memory registry of open booking forms."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._controllers: Dict[str, SubmissionController] = {}
        self._last_seen: Dict[str, float] = {}
        self._clock = clock
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)

    def add(self, controller: SubmissionController) -> None:
        with self._lock:
            self._controllers[controller.draft_id] = controller
            self._last_seen[controller.draft_id] = self._clock()

    def get(self, draft_id: str) -> Optional[SubmissionController]:
        with self._lock:
            controller = self._controllers.get(draft_id)
            if controller is not None:
                self._last_seen[draft_id] = self._clock()
            return controller

    def discard(self, draft_id: str) -> Optional[SubmissionController]:
        """Close the form: drop the draft and stop its countdown."""
        with self._lock:
            controller = self._controllers.pop(draft_id, None)
            self._last_seen.pop(draft_id, None)
        if controller is not None:
            controller.close()
        return controller

    def evict_idle(self, ttl_seconds: float) -> List[SubmissionController]:
        """Discard drafts untouched for ``ttl_seconds`` and return them."""
        cutoff = self._clock() - ttl_seconds
        with self._lock:
            stale = [draft_id for draft_id, seen in self._last_seen.items() if seen <= cutoff]
        evicted = []
        for draft_id in stale:
            controller = self.discard(draft_id)
            if controller is not None:
                evicted.append(controller)
        return evicted


draft_store = DraftStore()
