# reactor/run_logger.py
import csv
import os
import uuid
from datetime import datetime
from typing import Optional

from system.log_utils import debug, info, warn

HEADER = ["timestamp", "event", "step", "phase", "remaining", "TR", "TJ", "RPM", "EXT"]


def _fmt(v) -> str:
    try:
        return f"{float(v):.2f}"
    except (TypeError, ValueError):
        return ""


class RunLogger:
    """
    Per-run TSV log.

    One row per step event plus one row per new sensor sample while the
    run is active. Rows are built from the sequencer snapshot:
        { "phase": ..., "current_step": ..., "remaining_seconds": ...,
          "sample": { "tr": ..., "tj": ..., "rpm": ..., "ext": ..., "timestamp": ... } }
    """

    def __init__(self, base_dir="logs"):
        os.makedirs(base_dir, exist_ok=True)

        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        suffix = uuid.uuid4().hex[:6].upper()
        self.filename = os.path.join(base_dir, f"reactor_run_{ts}_{suffix}.tsv")

        info(f"[LOGGER] logging run to {self.filename}")

        # tab delimiter avoids conflict with decimal comma
        self.f = open(self.filename, "w", newline="", encoding="utf-8")
        self.writer = csv.writer(self.f, delimiter='\t')
        self.writer.writerow(HEADER)
        self.f.flush()

        self._last_sample_ts: Optional[float] = None

    def _write_row(self, event: str, snapshot: dict) -> None:
        if self.writer is None:
            return
        sample = snapshot.get("sample") or {}
        row = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            event,
            snapshot.get("current_step", 0),
            str(snapshot.get("phase", "")).ljust(21),
            snapshot.get("remaining_seconds", 0),
            _fmt(sample.get("tr")),
            _fmt(sample.get("tj")),
            _fmt(sample.get("rpm")),
            _fmt(sample.get("ext")),
        ]
        self.writer.writerow(row)
        self.f.flush()

    def write_event(self, event: str, snapshot: dict) -> None:
        debug(f"[LOGGER] event {event}")
        self._write_row(event, snapshot)

    def write_sample(self, snapshot: dict) -> bool:
        """Log the snapshot's sample unless it was already logged. Returns True when written."""
        sample = snapshot.get("sample")
        if not sample:
            return False
        ts = sample.get("timestamp")
        if ts is None or ts == self._last_sample_ts:
            return False
        self._last_sample_ts = ts
        self._write_row("SAMPLE", snapshot)
        return True

    def close(self):
        if self.f is None:
            return
        try:
            self.f.close()
        except OSError as e:
            warn(f"[LOGGER] error closing run log: {e}")
        self.f = None
        self.writer = None
