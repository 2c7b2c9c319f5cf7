# reactor/sequencer/step_event.py

from enum import Enum, auto


class StepEvent(Enum):
    """
    Discrete moments of a run emitted by the sequencer.
    NOT continuous state.
    """
    RUN_STARTED = auto()
    STEP_STARTED = auto()

    WAITING_FOR_THRESHOLD = auto()
    THRESHOLD_REACHED = auto()

    PAUSED = auto()
    RESUMED = auto()

    STEP_DONE = auto()
    STEP_SKIPPED = auto()

    RUN_COMPLETE = auto()          # no enabled step left
    RUN_RESET = auto()             # stopped or reset by user
