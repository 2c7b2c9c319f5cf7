# reactor/sequencer/status_tracker.py
import threading
from typing import Iterable, List, Set

from reactor.recipe import CompletionStatus, RecipeStore, STEP_COUNT
from system.log_utils import debug


class StatusTracker:
    """Per-step Wait/Run/Done indicator, persisted through the recipe store on change."""

    def __init__(self, recipe: RecipeStore):
        self._recipe = recipe
        self._lock = threading.Lock()
        self._statuses: List[CompletionStatus] = recipe.load_statuses()

    def statuses(self) -> List[CompletionStatus]:
        with self._lock:
            return list(self._statuses)

    def status(self, n: int) -> CompletionStatus:
        RecipeStore.check_index(n)
        with self._lock:
            return self._statuses[n - 1]

    def done_steps(self) -> Set[int]:
        with self._lock:
            return {n for n, s in enumerate(self._statuses, start=1) if s is CompletionStatus.DONE}

    def refresh(self, current_step: int, is_started: bool, is_paused: bool,
                done_steps: Iterable[int]) -> bool:
        done = set(done_steps)
        computed = []
        for n in range(1, STEP_COUNT + 1):
            if n in done:
                computed.append(CompletionStatus.DONE)
            elif n == current_step and is_started and not is_paused:
                computed.append(CompletionStatus.RUN)
            else:
                computed.append(CompletionStatus.WAIT)
        return self._store(computed)

    def reset(self) -> bool:
        return self._store([CompletionStatus.WAIT] * STEP_COUNT)

    def _store(self, statuses: List[CompletionStatus]) -> bool:
        with self._lock:
            if statuses == self._statuses:
                return False
            self._statuses = statuses
        self._recipe.save_statuses(statuses)
        debug(f"[STATUS] {' '.join(s.value for s in statuses)}")
        return True

    def to_list(self) -> List[str]:
        return [s.value for s in self.statuses()]
