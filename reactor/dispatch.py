# reactor/dispatch.py
"""
Paced, fire-and-forget delivery of step setpoints to the controller.

Callers enqueue a batch and return immediately; a single worker thread
sends the frames in order and sleeps the controller's settle time after
each. A failed frame is logged and counted, never retried, and never
stops the rest of the batch.
"""
from __future__ import annotations

import queue
import threading
import time
from typing import Callable, List, Optional, Tuple

from reactor.errors import TransportError
from reactor.recipe import Step, TargetChannel
from system.comm.iface import TransportInterface
from system.comm.protocol_reactor import ReactorProtocol
from system.log_utils import debug, info, warn, error

# Controller settle times
THERMOSTAT_SELECT_SETTLE = 0.150
SETPOINT_SETTLE = 0.050

Batch = List[Tuple[str, bytes, float]]


class SetpointDispatcher:
    def __init__(self, transport: TransportInterface, *,
                 thermostat_settle: float = THERMOSTAT_SELECT_SETTLE,
                 setpoint_settle: float = SETPOINT_SETTLE,
                 sleep: Callable[[float], None] = time.sleep):
        self.transport = transport
        self.thermostat_settle = thermostat_settle
        self.setpoint_settle = setpoint_settle
        self._sleep = sleep
        self._queue: "queue.Queue[Optional[Batch]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        self.sent_count = 0
        self.failed_count = 0
        self.last_error: Optional[str] = None

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def start(self) -> None:
        if self._worker and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, daemon=True, name="setpoint-dispatcher")
        self._worker.start()
        debug("[DISPATCH] worker started")

    def stop(self, timeout: float = 2.0) -> None:
        if not (self._worker and self._worker.is_alive()):
            return
        self._queue.put(None)
        self._worker.join(timeout=timeout)
        debug("[DISPATCH] worker stopped")

    def wait_idle(self) -> None:
        """Block until every queued batch has been sent."""
        self._queue.join()

    # -----------------------------
    # Batches
    # -----------------------------
    def build_step_batch(self, n: int, step: Step) -> Batch:
        t_hi, t_lo = ReactorProtocol.split_word(step.target_temperature)
        r_hi, r_lo = ReactorProtocol.split_word(step.target_rpm)
        return [
            ("thermostat_select",
             ReactorProtocol.thermostat_select(step.target_channel is TargetChannel.TJ, False),
             self.thermostat_settle),
            ("set_temperature", ReactorProtocol.set_temperature(n, t_hi, t_lo), self.setpoint_settle),
            ("set_rpm", ReactorProtocol.set_rpm(n, r_hi, r_lo), self.setpoint_settle),
        ]

    def dispatch_step(self, n: int, step: Step) -> None:
        batch = self.build_step_batch(n, step)
        info(f"[DISPATCH] step {n}: {step.target_temperature} {step.target_channel.value}, "
             f"{step.target_rpm} rpm")
        self._queue.put(batch)

    def send_initial_configuration(self, channel_a_is_tj: bool, stirrer_unit: int, stirrer_code: int) -> None:
        batch = [
            ("thermostat_select", ReactorProtocol.thermostat_select(channel_a_is_tj, False), self.thermostat_settle),
            ("select_stirrer", ReactorProtocol.select_stirrer(stirrer_unit, stirrer_code), self.setpoint_settle),
        ]
        info(f"[DISPATCH] initial configuration: stirrer unit={stirrer_unit} code={stirrer_code}")
        self._queue.put(batch)

    # -----------------------------
    # Worker
    # -----------------------------
    def _run(self) -> None:
        while True:
            batch = self._queue.get()
            try:
                if batch is None:
                    return
                for label, frame, settle in batch:
                    self._send(label, frame)
                    if settle > 0:
                        self._sleep(settle)
            finally:
                self._queue.task_done()

    def _send(self, label: str, frame: bytes) -> bool:
        try:
            self.transport.send(frame)
        except TransportError as e:
            with self._lock:
                self.failed_count += 1
                self.last_error = str(e)
            error(f"[DISPATCH] {label} failed: {e}")
            return False
        except Exception as e:
            with self._lock:
                self.failed_count += 1
                self.last_error = str(e)
            warn(f"[DISPATCH] {label} unexpected transport error: {e}")
            return False

        with self._lock:
            self.sent_count += 1
        debug(f"[DISPATCH] {label} sent")
        return True

    def stats(self) -> dict:
        with self._lock:
            return {"sent": self.sent_count, "failed": self.failed_count, "last_error": self.last_error}
