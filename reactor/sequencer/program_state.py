# reactor/sequencer/program_state.py
from __future__ import annotations

import threading
from typing import Callable, List

from system.log_utils import debug, warn


class ProgramState:
    """
    Run state shared by the sequencer and its observers.

    Every write goes through the internal lock. State observers are called
    after each mutation with the state itself; countdown-finished observers
    are called with the step index exactly once when remaining_seconds
    reaches 0. Observers run on the mutating thread, outside the lock.
    """

    def __init__(self, auto_mode: bool = True):
        self._lock = threading.RLock()
        self._state_subs: List[Callable[["ProgramState"], None]] = []
        self._finished_subs: List[Callable[[int], None]] = []

        self._current_step = 0
        self._remaining_seconds = 0
        self._is_started = False
        self._is_paused = False
        self._auto_mode = auto_mode

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, cb: Callable[["ProgramState"], None]) -> None:
        self._state_subs.append(cb)

    def subscribe_countdown_finished(self, cb: Callable[[int], None]) -> None:
        self._finished_subs.append(cb)

    def _notify(self) -> None:
        for cb in self._state_subs:
            try:
                cb(self)
            except Exception as e:
                warn(f"[STATE] observer error: {e}")

    def _notify_finished(self, step: int) -> None:
        debug(f"[STATE] countdown finished for step {step}")
        for cb in self._finished_subs:
            try:
                cb(step)
            except Exception as e:
                warn(f"[STATE] countdown observer error: {e}")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def current_step(self) -> int:
        with self._lock:
            return self._current_step

    @property
    def remaining_seconds(self) -> int:
        with self._lock:
            return self._remaining_seconds

    @property
    def is_started(self) -> bool:
        with self._lock:
            return self._is_started

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._is_paused

    @property
    def auto_mode(self) -> bool:
        with self._lock:
            return self._auto_mode

    @property
    def is_active(self) -> bool:
        """Started and not paused."""
        with self._lock:
            return self._is_started and not self._is_paused

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "current_step": self._current_step,
                "remaining_seconds": self._remaining_seconds,
                "is_started": self._is_started,
                "is_paused": self._is_paused,
                "auto_mode": self._auto_mode,
            }

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def start(self, step: int, seconds: int) -> None:
        with self._lock:
            self._current_step = step
            self._remaining_seconds = max(0, int(seconds))
            self._is_started = True
            self._is_paused = False
        self._notify()

    def pause(self) -> bool:
        with self._lock:
            if not self._is_started or self._is_paused:
                return False
            self._is_paused = True
        self._notify()
        return True

    def resume(self) -> bool:
        with self._lock:
            if not self._is_started or not self._is_paused:
                return False
            self._is_paused = False
        self._notify()
        return True

    def reset(self) -> None:
        with self._lock:
            self._current_step = 0
            self._remaining_seconds = 0
            self._is_started = False
            self._is_paused = False
        self._notify()

    def finish(self) -> None:
        """Run complete: same fields as reset, kept separate for readability at call sites."""
        self.reset()

    def set_auto_mode(self, enabled: bool) -> None:
        with self._lock:
            if self._auto_mode == bool(enabled):
                return
            self._auto_mode = bool(enabled)
        self._notify()

    def tick(self) -> int:
        """
        One countdown second. No-op unless started and unpaused; floors at 0.
        Returns the remaining seconds.
        """
        finished_step = None
        with self._lock:
            if not self._is_started or self._is_paused or self._remaining_seconds <= 0:
                return self._remaining_seconds
            self._remaining_seconds -= 1
            remaining = self._remaining_seconds
            if remaining == 0:
                finished_step = self._current_step

        self._notify()
        if finished_step is not None:
            self._notify_finished(finished_step)
        return remaining

    def expire(self) -> bool:
        """Force remaining_seconds to 0. Returns True when that fired countdown-finished."""
        with self._lock:
            if not self._is_started or self._remaining_seconds <= 0:
                return False
            self._remaining_seconds = 0
            step = self._current_step

        self._notify()
        self._notify_finished(step)
        return True
