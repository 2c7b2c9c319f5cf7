import pytest

from system.comm.protocol_reactor import (
    ReactorProtocol,
    STX,
    ETX,
    CMD_THERMOSTAT_SELECT,
    CMD_SET_TEMPERATURE,
    CMD_SET_RPM,
    CMD_SELECT_STIRRER,
)


def test_set_temperature_frame_layout():
    frame = ReactorProtocol.set_temperature(3, 0x01, 0x2C)

    assert frame == bytes([STX, CMD_SET_TEMPERATURE, 3, 3, 0x01, 0x2C,
                           (CMD_SET_TEMPERATURE + 3 + 3 + 0x01 + 0x2C) & 0xFF, ETX])


def test_thermostat_select_encodes_channels():
    cmd, payload = ReactorProtocol.parse_frame(ReactorProtocol.thermostat_select(True, False))

    assert cmd == CMD_THERMOSTAT_SELECT
    assert payload == bytes([1, 0])


def test_select_stirrer_and_rpm_commands():
    assert ReactorProtocol.parse_frame(ReactorProtocol.select_stirrer(1, 4)) == (CMD_SELECT_STIRRER, bytes([1, 4]))
    assert ReactorProtocol.parse_frame(ReactorProtocol.set_rpm(8, 0, 200)) == (CMD_SET_RPM, bytes([8, 0, 200]))


@pytest.mark.parametrize("value, expected", [
    (0, (0, 0)),
    (80.4, (0, 80)),
    (80.6, (0, 81)),
    (300, (1, 44)),
    (-1, (0xFF, 0xFF)),
])
def test_split_word(value, expected):
    assert ReactorProtocol.split_word(value) == expected


def test_join_word_is_signed():
    assert ReactorProtocol.join_word(0xFF, 0xF6) == -10
    assert ReactorProtocol.join_word(0x01, 0x2C) == 300


@pytest.mark.parametrize("args", [(0, 0, 0), (9, 0, 0), (1, 256, 0), (1, 0, -1)])
def test_invalid_setpoint_arguments(args):
    with pytest.raises(ValueError):
        ReactorProtocol.set_temperature(*args)


def test_non_int_step_rejected():
    with pytest.raises(TypeError):
        ReactorProtocol.set_rpm("1", 0, 0)


@pytest.mark.parametrize("mutate", [
    lambda f: f[:-1],                          # missing ETX
    lambda f: f[:-2] + bytes([f[-2] ^ 0xFF]) + f[-1:],  # bad checksum
    lambda f: f[:2] + bytes([9]) + f[3:],      # wrong length
])
def test_parse_frame_rejects_corruption(mutate):
    frame = ReactorProtocol.set_temperature(1, 0, 50)
    with pytest.raises(ValueError):
        ReactorProtocol.parse_frame(mutate(frame))
