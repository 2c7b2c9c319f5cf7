# reactor/sequencer/engine.py
# Step sequencer: drives a recipe run through Idle / WaitingForThreshold / CountingDown.
#
# Notes:
# - One RLock serializes every transition: user commands, timer ticks and
#   incoming samples. ProgramState keeps its own lock for field writes.
# - Threshold and countdown tasks are never running together.
# - Setpoint frames go through the dispatcher's worker; nothing here sleeps.

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Set

from reactor.dispatch import SetpointDispatcher
from reactor.errors import ConfigurationError
from reactor.recipe import RecipeStore, Step, TargetChannel, TimingMode
from reactor.run_clock import RunClock
from reactor.run_logger import RunLogger
from reactor.scheduler import PeriodicTask
from reactor.sensor_feed import SensorFeed, SensorSample
from reactor.sequencer.phase import Phase
from reactor.sequencer.program_state import ProgramState
from reactor.sequencer.status_tracker import StatusTracker
from reactor.sequencer.step_event import StepEvent
from reactor.sequencer.threshold import is_threshold_reached
from system.log_utils import debug, info, warn, error
from system.utils import format_duration

# Timing constants
THRESHOLD_INTERVAL = 0.5    # threshold re-check while waiting
COUNTDOWN_INTERVAL = 1.0    # one countdown second
REFRESH_INTERVAL = 0.5      # read-model publish / run log sampling

TaskFactory = Callable[[str, float, Callable[[int], None]], PeriodicTask]


class StepSequencer:
    """
    Owns the DoneSet, the phase and the three periodic tasks.

    Public commands (start/pause/resume/stop/reset/skip) never block on
    hardware. start() raises ConfigurationError for a step that cannot run;
    the other commands return False when they do not apply.
    """

    def __init__(self, recipe: RecipeStore, state: ProgramState, feed: SensorFeed,
                 dispatcher: SetpointDispatcher, status_tracker: Optional[StatusTracker] = None,
                 *, task_factory: TaskFactory = PeriodicTask, log_dir: Optional[str] = None,
                 threshold_interval: float = THRESHOLD_INTERVAL,
                 countdown_interval: float = COUNTDOWN_INTERVAL,
                 refresh_interval: float = REFRESH_INTERVAL):
        self.recipe = recipe
        self.state = state
        self.feed = feed
        self.dispatcher = dispatcher
        self.status = status_tracker or StatusTracker(recipe)
        self.log_dir = log_dir

        self._lock = threading.RLock()
        self.phase = Phase.IDLE
        # recovery: steps persisted as Done stay Done until the next fresh run or reset
        self.done_steps: Set[int] = self.status.done_steps()
        self._active_step: Optional[Step] = None
        self._step_total_seconds = 0
        self._skip_requested = False

        self.run_clock = RunClock()
        self.logger: Optional[RunLogger] = None

        self._progress_subs: List[Callable[[dict], None]] = []
        self._step_event_subs: List[Callable[[StepEvent], None]] = []

        self._threshold_task = task_factory("threshold-check", threshold_interval, self.threshold_tick)
        self._countdown_task = task_factory("countdown", countdown_interval, self.countdown_tick)
        self._refresh_task = task_factory("refresh", refresh_interval, self.refresh_tick)

        self.state.subscribe_countdown_finished(self._on_countdown_finished)
        self.feed.subscribe(self._on_sample)

    # -----------------------------
    # Subscriptions
    # -----------------------------
    def subscribe(self, cb: Callable[[dict], None]) -> None:
        self._progress_subs.append(cb)

    def subscribe_step_event(self, cb: Callable[[StepEvent], None]) -> None:
        self._step_event_subs.append(cb)

    def _emit_progress_event(self, snapshot: Optional[dict] = None) -> None:
        snapshot = snapshot or self.snapshot()
        for cb in self._progress_subs:
            try:
                cb(snapshot)
            except Exception as e:
                warn(f"[SEQ] notify error: {e}")

    def _emit_step_event(self, event: StepEvent) -> None:
        if self.logger:
            self.logger.write_event(event.name, self.snapshot())
        for cb in self._step_event_subs:
            try:
                cb(event)
            except Exception as e:
                warn(f"[SEQ] step event subscriber error: {e}")

    # -----------------------------
    # Session
    # -----------------------------
    def start_session(self, stirrer_unit: int = 1, stirrer_code: int = 0) -> None:
        """Start the dispatcher and refresh task and send the initial controller configuration."""
        self.dispatcher.start()
        first = self.recipe.first_enabled_step() or 1
        channel_a_is_tj = self.recipe.step(first).target_channel is TargetChannel.TJ
        self.dispatcher.send_initial_configuration(channel_a_is_tj, stirrer_unit, stirrer_code)
        self._refresh_task.start()
        info("[SEQ] session started")

    def shutdown(self) -> None:
        with self._lock:
            self._stop_step_tasks()
            self._refresh_task.stop()
            self._close_logger()
        self.recipe.save()
        self.dispatcher.stop()
        info("[SEQ] session shut down")

    # -----------------------------
    # Commands
    # -----------------------------
    def is_running(self) -> bool:
        return self.state.is_started

    def start(self, step: Optional[int] = None) -> bool:
        with self._lock:
            if self.state.is_started:
                if self.state.is_paused:
                    return self.resume()
                warn("[SEQ] start requested but already running")
                return False

            if not self.state.auto_mode:
                raise ConfigurationError("Auto mode is off")

            if step is None:
                step = self.recipe.first_enabled_step()
                if step is None:
                    raise ConfigurationError("No step is enabled")

            config = self._runnable_step(step)

            self._begin_run()
            self._activate_step(step, config)
            return True

    def next_step(self) -> None:
        """Advance to the lowest enabled step not yet Done, or finish the run."""
        with self._lock:
            if not self.state.is_started:
                warn("[SEQ] next step requested while idle")
                return

            n = self.recipe.next_pending_step(self.done_steps)
            if n is None:
                self._finish_run()
                return

            try:
                config = self._runnable_step(n)
            except ConfigurationError as e:
                error(f"[SEQ] cannot continue with step {n}: {e}")
                self._finish_run()
                return

            self._activate_step(n, config)

    def pause(self) -> bool:
        with self._lock:
            if not self.state.pause():
                debug("[SEQ] pause ignored")
                return False
            self._stop_step_tasks()
            self.run_clock.pause()
            self._refresh_statuses()
            info(f"[SEQ] paused at step {self.state.current_step}, {self.state.remaining_seconds}s left")
            self._emit_step_event(StepEvent.PAUSED)
            self._emit_progress_event()
            return True

    def resume(self) -> bool:
        with self._lock:
            if not self.state.resume():
                debug("[SEQ] resume ignored")
                return False
            if self.phase == Phase.COUNTING_DOWN:
                self._countdown_task.start()
            elif self.phase == Phase.WAITING_FOR_THRESHOLD:
                self._threshold_task.start()
            self.run_clock.start()
            self._refresh_statuses()
            info(f"[SEQ] resumed step {self.state.current_step} in {self.phase}")
            self._emit_step_event(StepEvent.RESUMED)
            self._emit_progress_event()
            return True

    def reset(self) -> None:
        with self._lock:
            # tasks first, so no tick can act on the state being cleared
            self._stop_step_tasks()

            was_active = self.state.is_started or bool(self.done_steps)
            self.done_steps.clear()
            self._active_step = None
            self._step_total_seconds = 0
            self.state.reset()
            self._set_phase(Phase.IDLE)
            self.status.reset()
            self.run_clock.reset()

            if was_active:
                info("[SEQ] program reset")
                self._emit_step_event(StepEvent.RUN_RESET)
            self._close_logger()
            self._emit_progress_event()

    def stop(self) -> None:
        info("[SEQ] stop requested")
        self.reset()

    def skip(self) -> bool:
        with self._lock:
            if not self.state.is_active:
                warn("[SEQ] skip ignored, no active step")
                return False

            self._stop_step_tasks()
            info(f"[SEQ] skipping step {self.state.current_step}")
            self._skip_requested = True
            try:
                if not self.state.expire():
                    self._complete_current_step()
            finally:
                self._skip_requested = False
            return True

    def set_auto_mode(self, enabled: bool) -> None:
        self.state.set_auto_mode(enabled)
        info(f"[SEQ] auto mode {'on' if enabled else 'off'}")
        self._emit_progress_event()

    # -----------------------------
    # Ticks (called by the periodic tasks; generation None = direct call)
    # -----------------------------
    def threshold_tick(self, generation: Optional[int] = None) -> None:
        with self._lock:
            if generation is not None and not self._threshold_task.is_current(generation):
                return
            if self.phase != Phase.WAITING_FOR_THRESHOLD or not self.state.is_active:
                return
            self._check_threshold(self.feed.latest())

    def countdown_tick(self, generation: Optional[int] = None) -> None:
        with self._lock:
            if generation is not None and not self._countdown_task.is_current(generation):
                return
            if self.phase != Phase.COUNTING_DOWN or not self.state.is_active:
                return
            self.state.tick()

    def refresh_tick(self, generation: Optional[int] = None) -> None:
        with self._lock:
            if generation is not None and not self._refresh_task.is_current(generation):
                return
            snapshot = self.snapshot()
            if self.logger and self.state.is_started:
                self.logger.write_sample(snapshot)
        self._emit_progress_event(snapshot)

    # -----------------------------
    # Read model
    # -----------------------------
    def snapshot(self) -> dict:
        with self._lock:
            state = self.state.to_dict()
            sample = self.feed.latest()
            remaining = state["remaining_seconds"]
            total = self._step_total_seconds
            step_elapsed = max(0, total - remaining) if state["is_started"] else 0
            run_elapsed = self.run_clock.elapsed()
            return {
                "phase": self.phase,
                **state,
                "remaining_text": format_duration(remaining),
                "step_total_seconds": total,
                "step_elapsed_seconds": step_elapsed,
                "step_elapsed_text": format_duration(step_elapsed),
                "run_elapsed_seconds": round(run_elapsed, 1),
                "run_elapsed_text": format_duration(run_elapsed),
                "done_steps": sorted(self.done_steps),
                "statuses": self.status.to_list(),
                "setpoint": self._active_step.to_dict() if self._active_step else None,
                "sample": sample.to_dict() if sample else None,
                "dispatch": self.dispatcher.stats(),
            }

    # -----------------------------
    # Internals
    # -----------------------------
    def _runnable_step(self, n: int) -> Step:
        try:
            step = self.recipe.step(n)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if not step.enabled:
            raise ConfigurationError(f"Step {n} is disabled")
        if step.duration_seconds <= 0:
            raise ConfigurationError(f"Step {n} has no duration")
        return step

    def _begin_run(self) -> None:
        self.done_steps.clear()
        self.status.reset()
        self.run_clock.reset()
        self.run_clock.start()
        self._open_logger()
        info("[SEQ] run started")
        self._emit_step_event(StepEvent.RUN_STARTED)

    def _activate_step(self, n: int, step: Step) -> None:
        self._stop_step_tasks()
        self._active_step = step
        self._step_total_seconds = step.duration_seconds
        self.state.start(n, step.duration_seconds)
        self.dispatcher.dispatch_step(n, step)

        info(f"[SEQ] step {n} started: {step.timing_mode.value} mode, "
             f"{format_duration(step.duration_seconds)}")
        self._emit_step_event(StepEvent.STEP_STARTED)

        if step.timing_mode is TimingMode.WAIT:
            if is_threshold_reached(step, self.feed.latest()):
                self._emit_step_event(StepEvent.THRESHOLD_REACHED)
                self._enter_countdown()
            else:
                self._enter_waiting()
        else:
            self._enter_countdown()

        self._refresh_statuses()
        self._emit_progress_event()

    def _enter_countdown(self) -> None:
        self._threshold_task.stop()
        self._set_phase(Phase.COUNTING_DOWN)
        self._countdown_task.start()

    def _enter_waiting(self) -> None:
        self._countdown_task.stop()
        self._set_phase(Phase.WAITING_FOR_THRESHOLD)
        self._threshold_task.start()
        step = self._active_step
        info(f"[SEQ] waiting for {step.target_channel.value} >= {step.target_temperature}")
        self._emit_step_event(StepEvent.WAITING_FOR_THRESHOLD)

    def _check_threshold(self, sample: Optional[SensorSample]) -> None:
        if not is_threshold_reached(self._active_step, sample):
            return
        info(f"[SEQ] threshold reached on step {self.state.current_step}")
        self._emit_step_event(StepEvent.THRESHOLD_REACHED)
        self._enter_countdown()
        self._emit_progress_event()

    def _on_sample(self, sample: SensorSample) -> None:
        with self._lock:
            if self.phase == Phase.WAITING_FOR_THRESHOLD and self.state.is_active:
                self._check_threshold(sample)

    def _on_countdown_finished(self, step_index: int) -> None:
        with self._lock:
            if not self.state.is_started or self.state.current_step != step_index or self.phase == Phase.IDLE:
                return
            self._complete_current_step()

    def _complete_current_step(self) -> None:
        n = self.state.current_step
        self._stop_step_tasks()
        self.done_steps.add(n)
        info(f"[SEQ] step {n} {'skipped' if self._skip_requested else 'done'}")
        self._emit_step_event(StepEvent.STEP_SKIPPED if self._skip_requested else StepEvent.STEP_DONE)
        self.next_step()

    def _finish_run(self) -> None:
        self._stop_step_tasks()
        self._active_step = None
        self._step_total_seconds = 0
        self._set_phase(Phase.IDLE)
        self.state.finish()
        self.run_clock.pause()
        self._refresh_statuses()
        info(f"[SEQ] run complete, done steps {sorted(self.done_steps)}")
        self._emit_step_event(StepEvent.RUN_COMPLETE)
        self._close_logger()
        self._emit_progress_event()

    def _stop_step_tasks(self) -> None:
        self._threshold_task.stop()
        self._countdown_task.stop()

    def _set_phase(self, phase: str) -> None:
        if self.phase != phase:
            self.phase = phase
            info(f"[SEQ] phase -> {phase}")

    def _refresh_statuses(self) -> None:
        self.status.refresh(self.state.current_step, self.state.is_started,
                            self.state.is_paused, self.done_steps)

    def _open_logger(self) -> None:
        self._close_logger()
        if not self.log_dir:
            return
        try:
            self.logger = RunLogger(self.log_dir)
        except OSError as e:
            warn(f"[SEQ] run log disabled: {e}")
            self.logger = None

    def _close_logger(self) -> None:
        if self.logger:
            self.logger.close()
            self.logger = None
