# comm/__init__.py

from .iface import TransportInterface
from .protocol_reactor import ReactorProtocol
from .serial_transport import SerialTransport

__all__ = [
    "TransportInterface",
    "ReactorProtocol",
    "SerialTransport",
]
