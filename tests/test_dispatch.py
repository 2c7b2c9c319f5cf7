import logging
import threading

from conftest import RecordingTransport
from reactor.dispatch import SetpointDispatcher, THERMOSTAT_SELECT_SETTLE, SETPOINT_SETTLE
from reactor.recipe import Step, TargetChannel
from system.comm.protocol_reactor import (
    CMD_THERMOSTAT_SELECT,
    CMD_SET_TEMPERATURE,
    CMD_SET_RPM,
)


def test_step_batch_is_paced_in_order():
    transport = RecordingTransport()
    sleeps = []
    d = SetpointDispatcher(transport, sleep=sleeps.append)
    d.start()

    d.dispatch_step(2, Step(target_temperature=65.6, target_rpm=1200, target_channel=TargetChannel.TJ))
    d.wait_idle()
    d.stop()

    assert transport.commands() == [CMD_THERMOSTAT_SELECT, CMD_SET_TEMPERATURE, CMD_SET_RPM]
    assert sleeps == [THERMOSTAT_SELECT_SETTLE, SETPOINT_SETTLE, SETPOINT_SETTLE]
    assert sleeps == [0.150, 0.050, 0.050]
    _, temp, rpm = transport.frames
    assert temp[3:6] == bytes([2, 0, 66])
    assert rpm[3:6] == bytes([2, 0x04, 0xB0])


def test_dispatch_returns_before_frames_are_sent():
    transport = RecordingTransport()
    release = threading.Event()
    d = SetpointDispatcher(transport, sleep=lambda _: release.wait(2.0))
    d.start()

    d.dispatch_step(1, Step())
    d.dispatch_step(2, Step())

    assert len(transport.frames) <= 1
    release.set()
    d.wait_idle()
    d.stop()
    assert len(transport.frames) == 6


def test_failed_frame_is_logged_and_not_retried(caplog):
    transport = RecordingTransport(fail_on={CMD_SET_TEMPERATURE})
    d = SetpointDispatcher(transport, thermostat_settle=0, setpoint_settle=0)
    d.start()

    with caplog.at_level(logging.ERROR, logger="reactor"):
        d.dispatch_step(1, Step(target_temperature=50))
        d.wait_idle()
    d.stop()

    assert transport.commands() == [CMD_THERMOSTAT_SELECT, CMD_SET_RPM]
    assert d.failed_count == 1
    assert d.sent_count == 2
    assert d.stats()["last_error"] == "link down"
    assert any("set_temperature failed" in r.getMessage() for r in caplog.records)


def test_negative_temperature_uses_twos_complement():
    d = SetpointDispatcher(RecordingTransport())

    batch = d.build_step_batch(1, Step(target_temperature=-10))

    label, frame, _ = batch[1]
    assert label == "set_temperature"
    assert frame[4:6] == bytes([0xFF, 0xF6])
