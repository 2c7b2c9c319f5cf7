# live_status_service.py
from __future__ import annotations
import threading
from typing import Dict, Any, Tuple

from system import services
from reactor.sensor_feed import SensorSample
from reactor.sequencer.phase import Phase


class LiveStatusService:
    """Caches the latest program snapshot and sensor sample for SSE clients."""

    def __init__(self):
        self.latest_program_snapshot: Dict[str, Any] = {"phase": Phase.IDLE, "current_step": 0}
        self.latest_sample: Dict[str, Any] = {}

        self._lock = threading.Lock()
        self._sequencer = None

    def attach_sequencer(self, sequencer) -> None:
        self._sequencer = sequencer
        sequencer.subscribe(self._on_progress)
        self._on_progress(sequencer.snapshot())

    def attach_feed(self, feed) -> None:
        feed.subscribe(self._on_sample)

    def _on_progress(self, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            self.latest_program_snapshot = dict(snapshot)

    def _on_sample(self, sample: SensorSample) -> None:
        with self._lock:
            self.latest_sample = sample.to_dict()

    def get_live_snapshots(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        with self._lock:
            return self.latest_program_snapshot.copy(), self.latest_sample.copy()


# -----------------------------------------------------------------------------
# Module-level delegates to instance in system.services
# -----------------------------------------------------------------------------

def _get_service() -> LiveStatusService | None:
    return getattr(services, "live_status_service", None)


def get_live_snapshots() -> Tuple[Dict[str, Any], Dict[str, Any]]:
    svc = _get_service()
    if svc is None:
        return {}, {}
    return svc.get_live_snapshots()
