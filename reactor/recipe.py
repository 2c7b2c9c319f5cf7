# reactor/recipe.py
"""
Recipe model and persistence.

A recipe is a fixed array of 8 steps addressed 1..8. Each step is stored
as flat keys in a JSON key/value document (``step{n}_{field}``) and written
to disk on every edit. Field edits never block: unparsable or out-of-range
input is corrected or kept, and reported back as ValidationError flags.
"""
from __future__ import annotations

import math
import threading
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from reactor.errors import ValidationError
from system.log_utils import debug, info, warn
from system.preferences import (
    Preferences,
    KEY_TEMP_MIN,
    KEY_TEMP_MAX,
    KEY_STIRRER_MIN,
    KEY_STIRRER_MAX,
    KEY_DOSING_MIN,
    KEY_DOSING_MAX,
)

STEP_COUNT = 8
MAX_HOURS = 99
MIN_MINUTES = 1
MAX_MINUTES = 59

SETTINGS_KEY = "settings"


class TargetChannel(Enum):
    TR = "TR"   # reactor (process) temperature
    TJ = "TJ"   # jacket temperature


class TimingMode(Enum):
    RUN = "Run"     # countdown starts immediately
    WAIT = "Wait"   # countdown starts once the threshold is reached


class CompletionStatus(Enum):
    WAIT = "Wait"
    RUN = "Run"
    DONE = "Done"


@dataclass
class Step:
    enabled: bool = False
    target_temperature: float = 25.0
    target_channel: TargetChannel = TargetChannel.TR
    target_rpm: int = 0
    dosing_volume: float = 0.0
    duration_hours: int = 0
    duration_minutes: int = MIN_MINUTES
    timing_mode: TimingMode = TimingMode.RUN

    @property
    def duration_seconds(self) -> int:
        return self.duration_hours * 3600 + self.duration_minutes * 60

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "target_temperature": self.target_temperature,
            "target_channel": self.target_channel.value,
            "target_rpm": self.target_rpm,
            "dosing_volume": self.dosing_volume,
            "duration_hours": self.duration_hours,
            "duration_minutes": self.duration_minutes,
            "timing_mode": self.timing_mode.value,
            "duration_seconds": self.duration_seconds,
        }


STEP_FIELDS = tuple(f.name for f in fields(Step))


@dataclass
class DeviceLimits:
    temp_min: float = -40.0
    temp_max: float = 250.0
    stirrer_min: float = 0
    stirrer_max: float = 2000
    dosing_min: float = 0.0
    dosing_max: float = 1000.0

    @classmethod
    def from_preferences(cls, prefs: Preferences) -> "DeviceLimits":
        d = cls()
        return cls(
            temp_min=prefs.get_float(KEY_TEMP_MIN, d.temp_min),
            temp_max=prefs.get_float(KEY_TEMP_MAX, d.temp_max),
            stirrer_min=prefs.get_float(KEY_STIRRER_MIN, d.stirrer_min),
            stirrer_max=prefs.get_float(KEY_STIRRER_MAX, d.stirrer_max),
            dosing_min=prefs.get_float(KEY_DOSING_MIN, d.dosing_min),
            dosing_max=prefs.get_float(KEY_DOSING_MAX, d.dosing_max),
        )

    def range_for(self, field_name: str) -> Optional[Tuple[float, float]]:
        return {
            "target_temperature": (self.temp_min, self.temp_max),
            "target_rpm": (self.stirrer_min, self.stirrer_max),
            "dosing_volume": (self.dosing_min, self.dosing_max),
        }.get(field_name)

    def to_dict(self) -> dict:
        return dict(self.__dict__)


# ----------------------------------------------------------------------
# Field parsing
# ----------------------------------------------------------------------

def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError("not finite")
        return int(value)
    return int(str(value).strip())


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    result = float(str(value).strip().replace(",", ".")) if isinstance(value, str) else float(value)
    if not math.isfinite(result):
        raise ValueError("not finite")
    return result


def parse_hours(value: Any, fallback: int) -> Tuple[int, Optional[str]]:
    """
    Hours in [0, 99]. Unparsable input keeps ``fallback`` (the last persisted
    value); out-of-range input is clamped. Returns (hours, problem or None).
    """
    try:
        hours = _to_int(value)
    except (TypeError, ValueError):
        return fallback, "not a whole number, previous value kept"
    if hours < 0 or hours > MAX_HOURS:
        return min(max(hours, 0), MAX_HOURS), f"must be between 0 and {MAX_HOURS}"
    return hours, None


def parse_minutes(value: Any) -> Tuple[int, Optional[str]]:
    """Minutes in [1, 59]; unparsable input becomes 1, out-of-range is clamped."""
    try:
        minutes = _to_int(value)
    except (TypeError, ValueError):
        return MIN_MINUTES, f"not a whole number, set to {MIN_MINUTES}"
    if minutes < MIN_MINUTES or minutes > MAX_MINUTES:
        return min(max(minutes, MIN_MINUTES), MAX_MINUTES), f"must be between {MIN_MINUTES} and {MAX_MINUTES}"
    return minutes, None


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def parse_channel(value: Any) -> TargetChannel:
    """Accepts TargetChannel, 'TR'/'TJ', or a toggle boolean (True = TJ)."""
    if isinstance(value, TargetChannel):
        return value
    if isinstance(value, bool):
        return TargetChannel.TJ if value else TargetChannel.TR
    return TargetChannel(str(value).strip().upper())


def parse_timing_mode(value: Any) -> TimingMode:
    """Accepts TimingMode, 'Run'/'Wait', or a toggle boolean (True = Run)."""
    if isinstance(value, TimingMode):
        return value
    if isinstance(value, bool):
        return TimingMode.RUN if value else TimingMode.WAIT
    return TimingMode(str(value).strip().capitalize())


def parse_status(value: Any) -> CompletionStatus:
    try:
        return CompletionStatus(str(value).strip().capitalize())
    except ValueError:
        return CompletionStatus.WAIT


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------

def _key(n: int, name: str) -> str:
    return f"step{n}_{name}"


class RecipeStore:
    """Eight steps plus free-form settings over a JSON key/value document."""

    def __init__(self, document: Preferences, limits: Optional[DeviceLimits] = None):
        self._doc = document
        self.limits = limits or DeviceLimits()
        self._lock = threading.RLock()
        self._steps: List[Step] = [self._read_step(n) for n in range(1, STEP_COUNT + 1)]
        info(f"[RECIPE] loaded {self.enabled_count()} enabled step(s) from {document.file}")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @staticmethod
    def check_index(n: int) -> None:
        if isinstance(n, bool) or not isinstance(n, int) or not 1 <= n <= STEP_COUNT:
            raise ValueError(f"Step index must be between 1 and {STEP_COUNT}, got {n!r}")

    def step(self, n: int) -> Step:
        self.check_index(n)
        with self._lock:
            return replace(self._steps[n - 1])

    def steps(self) -> List[Step]:
        with self._lock:
            return [replace(s) for s in self._steps]

    def enabled_count(self) -> int:
        with self._lock:
            return sum(1 for s in self._steps if s.enabled)

    def first_enabled_step(self) -> Optional[int]:
        return self.next_pending_step(())

    def next_pending_step(self, done_steps: Iterable[int]) -> Optional[int]:
        """Lowest-indexed step that is enabled and not in ``done_steps``."""
        done = set(done_steps)
        with self._lock:
            for n, s in enumerate(self._steps, start=1):
                if s.enabled and n not in done:
                    return n
        return None

    def to_dict(self) -> dict:
        with self._lock:
            steps = [dict(index=n, **s.to_dict()) for n, s in enumerate(self._steps, start=1)]
        return {"steps": steps, "limits": self.limits.to_dict()}

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def update_step(self, n: int, **changes: Any) -> List[ValidationError]:
        """
        Apply field edits to step ``n`` and persist immediately.

        Values may be typed or raw text. Returns the validation flags raised
        by this edit; flagged values are corrected or stored as-is, never
        rejected wholesale.
        """
        self.check_index(n)
        unknown = [k for k in changes if k not in STEP_FIELDS]
        if unknown:
            raise ValueError(f"Unknown step field(s): {', '.join(unknown)}")

        flags: List[ValidationError] = []
        with self._lock:
            step = replace(self._steps[n - 1])
            for name, raw in changes.items():
                problem = self._apply_field(step, name, raw)
                if problem:
                    flags.append(ValidationError(n, name, problem))
                elif name in ("target_temperature", "target_rpm", "dosing_volume"):
                    flags.extend(self._limit_flags(n, step, (name,)))

            self._steps[n - 1] = step
            self._doc.update_from_dict(self._step_record(n, step), write_disk=True)

        for flag in flags:
            warn(f"[RECIPE] {flag}")
        debug(f"[RECIPE] step {n} updated: {step.to_dict()}")
        return flags

    def validate(self, limits: Optional[DeviceLimits] = None) -> List[ValidationError]:
        """Range flags for every step against the device limits."""
        limits = limits or self.limits
        flags: List[ValidationError] = []
        with self._lock:
            for n, s in enumerate(self._steps, start=1):
                flags.extend(self._limit_flags(n, s, ("target_temperature", "target_rpm", "dosing_volume"), limits))
        return flags

    def save(self) -> None:
        with self._lock:
            for n, s in enumerate(self._steps, start=1):
                self._doc.data.update(self._step_record(n, s))
            self._doc.save()
        info(f"[RECIPE] saved to {self._doc.file}")

    # ------------------------------------------------------------------
    # Completion statuses
    # ------------------------------------------------------------------

    def load_statuses(self) -> List[CompletionStatus]:
        return [parse_status(self._doc.get(_key(n, "status"), CompletionStatus.WAIT.value))
                for n in range(1, STEP_COUNT + 1)]

    def save_statuses(self, statuses: List[CompletionStatus]) -> None:
        if len(statuses) != STEP_COUNT:
            raise ValueError(f"Expected {STEP_COUNT} statuses, got {len(statuses)}")
        record = {_key(n, "status"): s.value for n, s in enumerate(statuses, start=1)}
        self._doc.update_from_dict(record, write_disk=True)

    # ------------------------------------------------------------------
    # Free-form settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str, default: Any = None) -> Any:
        settings = self._doc.get(SETTINGS_KEY) or {}
        return settings.get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        settings = dict(self._doc.get(SETTINGS_KEY) or {})
        settings[key] = value
        self._doc.update_from_dict({SETTINGS_KEY: settings}, write_disk=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_field(self, step: Step, name: str, raw: Any) -> Optional[str]:
        """Mutate ``step`` in place, return a problem description or None."""
        if name == "duration_hours":
            step.duration_hours, problem = parse_hours(raw, step.duration_hours)
            return problem
        if name == "duration_minutes":
            step.duration_minutes, problem = parse_minutes(raw)
            return problem
        if name == "enabled":
            step.enabled = parse_bool(raw)
            return None

        try:
            if name == "target_channel":
                step.target_channel = parse_channel(raw)
            elif name == "timing_mode":
                step.timing_mode = parse_timing_mode(raw)
            elif name == "target_rpm":
                step.target_rpm = int(_to_float(raw))
            else:
                setattr(step, name, _to_float(raw))
        except (TypeError, ValueError):
            return f"invalid value {raw!r}, previous value kept"
        return None

    def _limit_flags(self, n: int, step: Step, names: Iterable[str],
                     limits: Optional[DeviceLimits] = None) -> List[ValidationError]:
        limits = limits or self.limits
        flags = []
        for name in names:
            lo, hi = limits.range_for(name)
            value = getattr(step, name)
            if not lo <= value <= hi:
                flags.append(ValidationError(n, name, f"{value} outside device limits {lo}..{hi}"))
        return flags

    def _step_record(self, n: int, step: Step) -> Dict[str, Any]:
        return {
            _key(n, "enabled"): step.enabled,
            _key(n, "target_temperature"): step.target_temperature,
            _key(n, "target_channel"): step.target_channel.value,
            _key(n, "target_rpm"): step.target_rpm,
            _key(n, "dosing_volume"): step.dosing_volume,
            _key(n, "duration_hours"): step.duration_hours,
            _key(n, "duration_minutes"): step.duration_minutes,
            _key(n, "timing_mode"): step.timing_mode.value,
        }

    def _read_step(self, n: int) -> Step:
        """Build a step from the document; bad persisted values fall back to defaults."""
        step = Step()
        for name in STEP_FIELDS:
            raw = self._doc.get(_key(n, name))
            if raw is None:
                continue
            default = getattr(step, name)
            problem = self._apply_field(step, name, raw)
            if problem:
                setattr(step, name, default)
                warn(f"[RECIPE] step {n} {name}: persisted value {raw!r} ignored")
        return step
