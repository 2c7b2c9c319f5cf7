# reactor/sequencer/actions.py
from typing import Optional

from reactor.errors import ConfigurationError
from reactor.sequencer.engine import StepSequencer
from system.log_utils import info, warn


class SequencerActions:
    """
    Canonical program commands.
    All user-triggered sequencer control goes through here and
    comes back as (ok, message).
    """

    def __init__(self, sequencer: StepSequencer):
        self._seq = sequencer

    def start(self, step: Optional[int] = None) -> tuple[bool, str]:
        info(f"[SEQ] Start requested (step={step or 'first enabled'})")
        try:
            started = self._seq.start(step)
        except ConfigurationError as e:
            warn(f"[SEQ] Start rejected: {e}")
            return False, str(e)

        if not started:
            return False, "Program already running"
        return True, f"Step {self._seq.state.current_step} running"

    def pause(self) -> tuple[bool, str]:
        info("[SEQ] Pause requested")
        if not self._seq.pause():
            return False, "Nothing to pause"
        return True, "Paused"

    def resume(self) -> tuple[bool, str]:
        info("[SEQ] Resume requested")
        if not self._seq.resume():
            return False, "Not paused"
        return True, "Resumed"

    def stop(self) -> tuple[bool, str]:
        warn("[SEQ] Stop requested")
        self._seq.stop()
        return True, "Stopped"

    def reset(self) -> tuple[bool, str]:
        warn("[SEQ] Reset requested")
        self._seq.reset()
        return True, "Reset"

    def skip(self) -> tuple[bool, str]:
        info("[SEQ] Skip requested")
        if not self._seq.skip():
            return False, "Skip allowed only while a step is running"
        return True, "Step skipped"

    def set_auto_mode(self, enabled: bool) -> tuple[bool, str]:
        self._seq.set_auto_mode(enabled)
        return True, f"Auto mode {'on' if enabled else 'off'}"

    def perform_action(self, action: str, **kwargs) -> tuple[bool, str]:
        """
        Perform an action by name.
        """
        action_map = {
            "start": self.start,
            "pause": self.pause,
            "resume": self.resume,
            "stop": self.stop,
            "reset": self.reset,
            "skip": self.skip,
        }

        if action not in action_map:
            warn(f"[SEQ] Unknown action requested: {action}")
            return False, "Unknown action"

        return action_map[action](**kwargs)
