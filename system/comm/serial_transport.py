# comm/serial_transport.py
import threading
import time
from typing import List, Optional

import serial

from reactor.errors import TransportError
from system.comm.iface import TransportInterface, ValuesCallback
from system.log_utils import debug, info, warn, error, verbose


def parse_values_line(line: bytes) -> Optional[List[float]]:
    """
    Decode one ASCII sample line, e.g. b"45.2,44.8,300,21.0\\r\\n".
    Comma, semicolon or whitespace separated. None when not numeric.
    """
    try:
        text = line.decode("ascii").strip()
    except UnicodeDecodeError:
        return None
    if not text:
        return None
    parts = text.replace(";", ",").replace(",", " ").split()
    try:
        return [float(p) for p in parts]
    except ValueError:
        return None


class SerialTransport(TransportInterface):
    """
    Reactor controller over USB-RS232 adapter (/dev/ttyUSBx)
    """

    def __init__(self, port, *, baudrate=9600, read_timeout=0.3, write_timeout=0.3):
        super().__init__()
        self.port = port
        self.ser = None
        self._reader: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._write_lock = threading.Lock()

        try:
            self.ser = serial.Serial(
                port=port,
                baudrate=baudrate,
                bytesize=8,
                parity='N',
                stopbits=1,
                timeout=read_timeout,
                write_timeout=write_timeout,
            )
            info(f"[SERIAL] opened {port} @ {baudrate}")
        except (serial.SerialException, ValueError) as e:
            error(f"❌ [SERIAL] open failed on {port}: {e}")
            self.error = True

    def send(self, frame: bytes) -> bool:
        if self.error or self.ser is None:
            raise TransportError(f"port {self.port} not available")

        try:
            with self._write_lock:
                self.ser.write(frame)
                self.ser.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"write to {self.port} failed: {e}") from e

        verbose(f"[SERIAL] tx {frame.hex(' ')}")
        return True

    def start(self, on_values: ValuesCallback) -> None:
        super().start(on_values)
        if self.error or self.ser is None:
            warn(f"[SERIAL] reader not started, port {self.port} unavailable")
            return
        if self._reader and self._reader.is_alive():
            return

        self._stop_event.clear()
        self._reader = threading.Thread(target=self._read_loop, daemon=True, name="serial-reader")
        self._reader.start()

    def _read_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                line = self.ser.readline()
            except (serial.SerialException, OSError) as e:
                error(f"[SERIAL] read failed: {e}")
                time.sleep(1.0)
                continue

            if not line:
                continue

            values = parse_values_line(line)
            if values is None:
                debug(f"[SERIAL] unparsable line dropped: {line!r}")
                continue

            if self._on_values:
                self._on_values(values)

    def close(self) -> None:
        self._stop_event.set()
        if self._reader and self._reader.is_alive():
            self._reader.join(timeout=1.0)
        if self.ser is not None:
            try:
                self.ser.close()
            except (serial.SerialException, OSError) as e:
                warn(f"[SERIAL] close failed: {e}")
        info(f"[SERIAL] closed {self.port}")
