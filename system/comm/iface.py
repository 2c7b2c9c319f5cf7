# comm/iface.py
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

ValuesCallback = Callable[[List[float]], None]


class TransportInterface(ABC):
    def __init__(self):
        self.error = False
        self._on_values: Optional[ValuesCallback] = None

    @abstractmethod
    def send(self, frame: bytes) -> bool:
        """Deliver one frame. Raises TransportError when it cannot."""

    def start(self, on_values: ValuesCallback) -> None:
        """Begin delivering incoming value arrays to ``on_values``."""
        self._on_values = on_values

    def close(self) -> None:
        pass
