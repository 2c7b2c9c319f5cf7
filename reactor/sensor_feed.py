# reactor/sensor_feed.py
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, asdict
from typing import Callable, List, Optional, Sequence

from reactor.errors import DataError
from system.log_utils import debug, verbose, warn

# Index mapping of the controller's value array
IDX_TR = 0
IDX_TJ = 1
IDX_RPM = 2
IDX_EXT = 3
MIN_VALUES = 4


@dataclass(frozen=True)
class SensorSample:
    tr: float
    tj: float
    rpm: float
    ext: float
    timestamp: float

    @classmethod
    def from_values(cls, values: Sequence[float], timestamp: Optional[float] = None) -> "SensorSample":
        if values is None or isinstance(values, (str, bytes)):
            raise DataError("sample is not a value array")
        try:
            count = len(values)
        except TypeError:
            raise DataError("sample is not a value array") from None
        if count < MIN_VALUES:
            raise DataError(f"sample has {count} value(s), need at least {MIN_VALUES}")
        try:
            tr, tj, rpm, ext = (float(values[i]) for i in (IDX_TR, IDX_TJ, IDX_RPM, IDX_EXT))
        except (TypeError, ValueError) as e:
            raise DataError(f"sample value not numeric: {e}") from None
        return cls(tr=tr, tj=tj, rpm=rpm, ext=ext,
                   timestamp=time.time() if timestamp is None else timestamp)

    def to_dict(self) -> dict:
        return asdict(self)


class SensorFeed:
    """
    Latest-wins holder for controller samples.
    Malformed samples are dropped and never reach the sequencer.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[SensorSample] = None
        self._subs: List[Callable[[SensorSample], None]] = []
        self.received_count = 0
        self.dropped_count = 0

    def subscribe(self, cb: Callable[[SensorSample], None]) -> None:
        self._subs.append(cb)

    def on_sample_received(self, values: Sequence[float], timestamp: Optional[float] = None) -> bool:
        try:
            sample = SensorSample.from_values(values, timestamp)
        except DataError as e:
            with self._lock:
                self.dropped_count += 1
            debug(f"[FEED] sample dropped: {e}")
            return False

        with self._lock:
            self._latest = sample
            self.received_count += 1
        verbose(f"[FEED] TR={sample.tr} TJ={sample.tj} RPM={sample.rpm} EXT={sample.ext}")

        for cb in self._subs:
            try:
                cb(sample)
            except Exception as e:
                warn(f"[FEED] subscriber error: {e}")
        return True

    def latest(self) -> Optional[SensorSample]:
        with self._lock:
            return self._latest
