# device/device_init.py
from typing import Optional

from system import services
from system.log_utils import info, debug


def init_preferences_service(filename: str = "config/system_prefs.json"):
    from system.preferences import Preferences
    services.preferences_service = Preferences(filename)


def init_recipe_store(filename: str = "config/recipe_set1.json"):
    from system.preferences import Preferences
    from reactor.recipe import RecipeStore, DeviceLimits

    document = Preferences(filename, valid_keys=None)
    limits = DeviceLimits.from_preferences(services.preferences_service)
    services.recipe_store = RecipeStore(document, limits)

    for flag in services.recipe_store.validate():
        debug(f"[DEVICE] recipe flag: {flag}")


def init_transport(port: Optional[str] = None):
    from system.preferences import KEY_SERIAL_PORT, KEY_BAUDRATE, KEY_SIMULATOR_ENABLED
    prefs = services.preferences_service

    if port is None and prefs.get_bool(KEY_SIMULATOR_ENABLED, False):
        from sim.reactor_sim import SimulatedReactor
        services.transport = SimulatedReactor()
        info("[DEVICE] using simulated reactor")
        return

    from system.comm.serial_transport import SerialTransport
    port = port or prefs.get(KEY_SERIAL_PORT)
    services.transport = SerialTransport(port, baudrate=prefs.get_int(KEY_BAUDRATE, 9600))
    debug(f"[DEVICE] serial target: {port}")


def init_sensor_feed():
    from reactor.sensor_feed import SensorFeed
    services.sensor_feed = SensorFeed()


def init_dispatcher():
    from reactor.dispatch import SetpointDispatcher
    services.dispatcher = SetpointDispatcher(services.transport)


def init_sequencer():
    from reactor.sequencer.actions import SequencerActions
    from reactor.sequencer.engine import StepSequencer
    from reactor.sequencer.program_state import ProgramState
    from system.preferences import KEY_LOG_DIRECTORY

    services.program_state = ProgramState()
    services.sequencer = StepSequencer(
        services.recipe_store,
        services.program_state,
        services.sensor_feed,
        services.dispatcher,
        log_dir=services.preferences_service.get(KEY_LOG_DIRECTORY, "logs"),
    )
    services.sequencer_actions = SequencerActions(services.sequencer)


def init_live_status_service():
    from reactor.sse.live_status_service import LiveStatusService
    services.live_status_service = LiveStatusService()
    services.live_status_service.attach_sequencer(services.sequencer)
    services.live_status_service.attach_feed(services.sensor_feed)


def start_session():
    from system.preferences import KEY_STIRRER_UNIT, KEY_STIRRER_CODE
    prefs = services.preferences_service

    services.transport.start(services.sensor_feed.on_sample_received)
    services.sequencer.start_session(
        stirrer_unit=prefs.get_int(KEY_STIRRER_UNIT, 1),
        stirrer_code=prefs.get_int(KEY_STIRRER_CODE, 0),
    )


def shutdown():
    if services.sequencer is not None:
        services.sequencer.shutdown()
    if services.transport is not None:
        services.transport.close()
    info("[DEVICE] shutdown complete")


def init_all(port: Optional[str] = None,
             prefs_file: str = "config/system_prefs.json",
             recipe_file: str = "config/recipe_set1.json"):
    init_preferences_service(prefs_file)
    init_recipe_store(recipe_file)
    init_transport(port)
    init_sensor_feed()
    init_dispatcher()
    init_sequencer()
    init_live_status_service()
