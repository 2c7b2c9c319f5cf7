# reactor/scheduler.py
import threading
from typing import Callable, Optional

from system.log_utils import error, verbose


class PeriodicTask:
    """
    Calls ``callback(generation)`` every ``interval`` seconds on a daemon thread.

    stop() never blocks: it bumps the generation and signals the thread, so a
    tick already in flight reaches the callback with a stale generation and
    must be ignored there (see is_current). Each start() spawns a new thread
    with its own stop event.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[int], None]):
        self.name = name
        self.interval = interval
        self._callback = callback
        self._lock = threading.Lock()
        self._generation = 0
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return self._stop_event is not None and generation == self._generation

    def is_running(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    def start(self) -> int:
        with self._lock:
            if self._stop_event is not None:
                return self._generation
            self._generation += 1
            generation = self._generation
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run, args=(generation, stop_event), daemon=True, name=f"{self.name}-{generation}"
            )
            self._thread.start()
        verbose(f"[SCHED] {self.name} started (gen {generation})")
        return generation

    def stop(self) -> None:
        with self._lock:
            if self._stop_event is None:
                return
            self._stop_event.set()
            self._stop_event = None
            self._generation += 1
        verbose(f"[SCHED] {self.name} stopped")

    def join(self, timeout: float = 2.0) -> None:
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _run(self, generation: int, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self._callback(generation)
            except Exception as e:
                error(f"[SCHED] {self.name} tick failed: {e}")
