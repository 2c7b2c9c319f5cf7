import time


class RunClock:
    """
    Pausable stopwatch for the whole run.
    - No background thread
    - Explicit start / pause / reset
    - Monotonic time source (injectable for tests)
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._running = False
        self._accum = 0.0
        self._last_start = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        if not self._running:
            self._last_start = self._clock()
            self._running = True

    def pause(self):
        if self._running:
            self._accum += self._clock() - self._last_start
            self._last_start = None
            self._running = False

    def reset(self):
        self._running = False
        self._accum = 0.0
        self._last_start = None

    def elapsed(self) -> float:
        if self._running:
            return self._accum + (self._clock() - self._last_start)
        return self._accum
