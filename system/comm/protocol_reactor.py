"""
Reactor controller - binary RS232 command frames

Frame layout:
    STX(0x02) CMD LEN PAYLOAD... CHK ETX(0x03)
    CHK = (CMD + LEN + sum(PAYLOAD)) & 0xFF

Notes:
- 8N1, default baud 9600
- 16-bit values are sent big-endian as (high, low), rounded,
  negatives in two's complement
- Steps are addressed 1..8
"""
from typing import Tuple

STX = 0x02
ETX = 0x03

CMD_THERMOSTAT_SELECT = 0x10
CMD_SET_TEMPERATURE = 0x20
CMD_SET_RPM = 0x30
CMD_SELECT_STIRRER = 0x40

COMMAND_NAMES = {
    CMD_THERMOSTAT_SELECT: "thermostat_select",
    CMD_SET_TEMPERATURE: "set_temperature",
    CMD_SET_RPM: "set_rpm",
    CMD_SELECT_STIRRER: "select_stirrer",
}

MAX_STEP = 8


def _check_byte(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int")
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be in range 0-255")
    return value


def _check_step(step: int) -> int:
    if isinstance(step, bool) or not isinstance(step, int):
        raise TypeError("Step must be int")
    if not 1 <= step <= MAX_STEP:
        raise ValueError(f"Step must be in range 1-{MAX_STEP}")
    return step


class ReactorProtocol:
    # ---------------------------
    # Framing
    # ---------------------------

    @staticmethod
    def frame(cmd: int, payload: bytes = b"") -> bytes:
        _check_byte("Command", cmd)
        payload = bytes(payload)
        if len(payload) > 0xFF:
            raise ValueError("Payload too long")
        checksum = (cmd + len(payload) + sum(payload)) & 0xFF
        return bytes([STX, cmd, len(payload)]) + payload + bytes([checksum, ETX])

    @staticmethod
    def parse_frame(data: bytes) -> Tuple[int, bytes]:
        """Return (cmd, payload); ValueError on malformed frames."""
        data = bytes(data)
        if len(data) < 5 or data[0] != STX or data[-1] != ETX:
            raise ValueError("Missing STX/ETX")
        cmd, length = data[1], data[2]
        payload = data[3:-2]
        if len(payload) != length:
            raise ValueError(f"Length mismatch: header {length}, payload {len(payload)}")
        if (cmd + length + sum(payload)) & 0xFF != data[-2]:
            raise ValueError("Checksum mismatch")
        return cmd, payload

    @staticmethod
    def split_word(value: float) -> Tuple[int, int]:
        """Round to int and split into (high, low) bytes of a 16-bit word."""
        word = int(round(value)) & 0xFFFF
        return word >> 8, word & 0xFF

    @staticmethod
    def join_word(high: int, low: int) -> int:
        """Inverse of split_word, signed."""
        word = ((high & 0xFF) << 8) | (low & 0xFF)
        return word - 0x10000 if word & 0x8000 else word

    # ---------------------------
    # Commands
    # ---------------------------

    @staticmethod
    def thermostat_select(channel_a_is_tj: bool, channel_b_is_tj: bool) -> bytes:
        """Select the controlled sensor per thermostat channel (TJ=1, TR=0)."""
        return ReactorProtocol.frame(
            CMD_THERMOSTAT_SELECT, bytes([int(bool(channel_a_is_tj)), int(bool(channel_b_is_tj))])
        )

    @staticmethod
    def set_temperature(step: int, high: int, low: int) -> bytes:
        return ReactorProtocol.frame(
            CMD_SET_TEMPERATURE, bytes([_check_step(step), _check_byte("High", high), _check_byte("Low", low)])
        )

    @staticmethod
    def set_rpm(step: int, high: int, low: int) -> bytes:
        return ReactorProtocol.frame(
            CMD_SET_RPM, bytes([_check_step(step), _check_byte("High", high), _check_byte("Low", low)])
        )

    @staticmethod
    def select_stirrer(unit: int, code: int) -> bytes:
        return ReactorProtocol.frame(
            CMD_SELECT_STIRRER, bytes([_check_byte("Unit", unit), _check_byte("Code", code)])
        )
