import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
from system.log_utils import debug, warn, error

# --- Preference Keys ---
VALID_PREF_KEYS = [
        "serial_port",
        "baudrate",
        "simulator_enabled",
        "stirrer_unit",
        "stirrer_code",
        "temp_min",
        "temp_max",
        "stirrer_min",
        "stirrer_max",
        "dosing_min",
        "dosing_max",
        "log_directory",
    ]

KEY_SERIAL_PORT           = VALID_PREF_KEYS[0]
KEY_BAUDRATE              = VALID_PREF_KEYS[1]
KEY_SIMULATOR_ENABLED     = VALID_PREF_KEYS[2]
KEY_STIRRER_UNIT          = VALID_PREF_KEYS[3]
KEY_STIRRER_CODE          = VALID_PREF_KEYS[4]
KEY_TEMP_MIN              = VALID_PREF_KEYS[5]
KEY_TEMP_MAX              = VALID_PREF_KEYS[6]
KEY_STIRRER_MIN           = VALID_PREF_KEYS[7]
KEY_STIRRER_MAX           = VALID_PREF_KEYS[8]
KEY_DOSING_MIN            = VALID_PREF_KEYS[9]
KEY_DOSING_MAX            = VALID_PREF_KEYS[10]
KEY_LOG_DIRECTORY         = VALID_PREF_KEYS[11]

DEFAULT_PREFS: Dict[str, Any] = {
    KEY_SERIAL_PORT: "/dev/ttyUSB0",
    KEY_BAUDRATE: 9600,
    KEY_SIMULATOR_ENABLED: False,
    KEY_STIRRER_UNIT: 1,
    KEY_STIRRER_CODE: 0,
    KEY_TEMP_MIN: -40.0,
    KEY_TEMP_MAX: 250.0,
    KEY_STIRRER_MIN: 0,
    KEY_STIRRER_MAX: 2000,
    KEY_DOSING_MIN: 0.0,
    KEY_DOSING_MAX: 1000.0,
    KEY_LOG_DIRECTORY: "logs",
}


class Preferences:
    """
    Simple JSON-based key/value store with callback support.

    valid_keys restricts which keys update_from_dict() accepts;
    pass None to accept any key (recipe documents).
    """

    def __init__(self, filename: str = "config/system_prefs.json",
                 valid_keys: Optional[Iterable[str]] = VALID_PREF_KEYS,
                 defaults: Optional[Dict[str, Any]] = None):
        self.file = Path(filename)
        self.valid_keys = list(valid_keys) if valid_keys is not None else None
        self.data: Dict[str, Any] = {}
        self._callbacks: Dict[str, List[Callable[[Any], None]]] = {}
        self._load()

        if defaults is None and self.valid_keys == VALID_PREF_KEYS:
            defaults = DEFAULT_PREFS
        for k, v in (defaults or {}).items():
            self.data.setdefault(k, v)

    # ------------------------------------------------------------------
    # Core file ops
    # ------------------------------------------------------------------

    def _load(self):
        if not self.file.exists():
            warn(f"[PREFS] file not found, will create {self.file}")
            self.data = {}
            return
        try:
            with open(self.file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            error(f"[PREFS] load failed: {e}")
            self.data = {}
            return

        if not isinstance(loaded, dict):
            error(f"[PREFS] {self.file} does not hold an object, ignoring")
            loaded = {}
        self.data = loaded

    def save(self):
        """Public save method."""
        try:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.file, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            error(f"[PREFS] save failed: {e}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.data.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.data.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.data.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes", "on")
        return bool(value)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def update_from_dict(self, d: Dict[str, Any], write_disk: bool = False) -> List[str]:
        """Update preferences from dictionary.

        Args:
            d: Dictionary of key-value pairs to update
            write_disk: If True, saves to disk. If False, updates memory only.
        """
        updated = []
        for k, v in d.items():
            if self.valid_keys is not None and k not in self.valid_keys:
                continue

            if k not in self.data or self.data[k] != v:
                self.data[k] = v
                updated.append(k)
            else:
                debug(f"[PREFS] skipping {k}, value unchanged")

        if updated:
            debug(f"[PREFS] updating keys: {updated}")
            if write_disk:
                self.save()
            for k in updated:
                self._notify(k, self.data[k])

        return updated

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def register_callback(self, key, cb: Callable[[Any], None]):
        if key not in self._callbacks:
            self._callbacks[key] = []
        self._callbacks[key].append(cb)

    def _notify(self, key: str, value: Any):
        for cb in self._callbacks.get(key, []):
            try:
                cb(value)
            except Exception as e:
                warn(f"[PREFS] callback for '{key}' failed: {e}")

    # ------------------------------------------------------------------

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.data)
