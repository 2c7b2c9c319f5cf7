# sim/reactor_sim.py
"""
Simulated reactor controller.

Accepts the same command frames as the serial controller and answers with
[TR, TJ, RPM, EXT] value arrays from a first-order thermal model:
the jacket (TJ) is driven toward the setpoint, the reactor (TR) follows
the jacket with a lag, the stirrer ramps toward its RPM setpoint.
"""
import random
import threading
from typing import List, Optional, Tuple

from reactor.errors import TransportError
from system.comm.iface import TransportInterface, ValuesCallback
from system.comm.protocol_reactor import (
    ReactorProtocol,
    COMMAND_NAMES,
    CMD_THERMOSTAT_SELECT,
    CMD_SET_TEMPERATURE,
    CMD_SET_RPM,
    CMD_SELECT_STIRRER,
)
from system.log_utils import debug, info

AMBIENT = 20.0


def _approach(current: float, target: float, max_delta: float) -> float:
    delta = target - current
    if abs(delta) <= max_delta:
        return target
    return current + max_delta if delta > 0 else current - max_delta


class SimulatedReactor(TransportInterface):
    def __init__(self, *, interval: float = 0.5, jacket_rate: float = 0.5,
                 reactor_lag: float = 0.1, rpm_rate: float = 50.0, noise: float = 0.0):
        super().__init__()
        self.interval = interval
        self.jacket_rate = jacket_rate      # degC per second
        self.reactor_lag = reactor_lag      # fraction of TJ-TR gap closed per second
        self.rpm_rate = rpm_rate            # rpm per second
        self.noise = noise

        self._lock = threading.Lock()
        self.channel_is_tj = False
        self.setpoint_temperature = AMBIENT
        self.setpoint_rpm = 0.0
        self.stirrer: Optional[Tuple[int, int]] = None
        self.tr = AMBIENT
        self.tj = AMBIENT
        self.rpm = 0.0
        self.received: List[Tuple[str, bytes]] = []

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -----------------------------
    # Commands
    # -----------------------------
    def send(self, frame: bytes) -> bool:
        try:
            cmd, payload = ReactorProtocol.parse_frame(frame)
        except ValueError as e:
            raise TransportError(f"simulator rejected frame: {e}") from e

        with self._lock:
            self.received.append((COMMAND_NAMES.get(cmd, hex(cmd)), payload))
            if cmd == CMD_THERMOSTAT_SELECT:
                self.channel_is_tj = bool(payload[0])
            elif cmd == CMD_SET_TEMPERATURE:
                self.setpoint_temperature = float(ReactorProtocol.join_word(payload[1], payload[2]))
            elif cmd == CMD_SET_RPM:
                self.setpoint_rpm = float(ReactorProtocol.join_word(payload[1], payload[2]))
            elif cmd == CMD_SELECT_STIRRER:
                self.stirrer = (payload[0], payload[1])

        debug(f"[SIM] rx {COMMAND_NAMES.get(cmd, hex(cmd))} {payload.hex(' ')}")
        return True

    # -----------------------------
    # Model
    # -----------------------------
    def advance(self, dt: float) -> List[float]:
        """Advance the model by ``dt`` seconds and return the new value array."""
        with self._lock:
            target = self.setpoint_temperature
            if self.channel_is_tj:
                drive = target
            else:
                # overdrive the jacket while the reactor lags behind
                drive = target + 2.0 * (target - self.tr)
            self.tj = _approach(self.tj, drive, self.jacket_rate * dt)
            self.tr += (self.tj - self.tr) * min(1.0, self.reactor_lag * dt)
            self.rpm = _approach(self.rpm, self.setpoint_rpm, self.rpm_rate * dt)
            return self.values()

    def values(self) -> List[float]:
        jitter = (lambda: random.uniform(-self.noise, self.noise)) if self.noise else (lambda: 0.0)
        return [self.tr + jitter(), self.tj + jitter(), self.rpm, self.tr + jitter()]

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def start(self, on_values: ValuesCallback) -> None:
        super().start(on_values)
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="reactor-sim")
        self._thread.start()
        info("[SIM] simulated reactor running")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            values = self.advance(self.interval)
            if self._on_values:
                self._on_values(values)

    def close(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        info("[SIM] simulated reactor stopped")
