# services.py
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reactor.dispatch import SetpointDispatcher
    from reactor.recipe import RecipeStore
    from reactor.sensor_feed import SensorFeed
    from reactor.sequencer.actions import SequencerActions
    from reactor.sequencer.engine import StepSequencer
    from reactor.sequencer.program_state import ProgramState
    from reactor.sse.live_status_service import LiveStatusService
    from system.comm.iface import TransportInterface
    from system.preferences import Preferences

# ------------------------------------------------------------------------------
# Service singletons (initialized in order in device_init.py)
# ------------------------------------------------------------------------------

preferences_service: Preferences = None

recipe_store: RecipeStore = None

transport: TransportInterface = None

sensor_feed: SensorFeed = None

dispatcher: SetpointDispatcher = None

program_state: ProgramState = None

sequencer: StepSequencer = None

sequencer_actions: SequencerActions = None

live_status_service: LiveStatusService = None
