# reactor/errors.py


class ReactorError(Exception):
    """Base class for reactor sequencing errors."""


class ConfigurationError(ReactorError):
    """Step cannot be started: disabled, zero duration, out of range or Auto mode off."""


class TransportError(ReactorError):
    """Frame could not be delivered to the controller."""


class DataError(ReactorError):
    """Incoming sensor sample is malformed and was dropped."""


class ValidationError(ReactorError):
    """
    A recipe field is out of the device limits or unparsable.
    Reported per field; never blocks a run.
    """

    def __init__(self, step: int, field: str, message: str):
        super().__init__(f"step {step} {field}: {message}")
        self.step = step
        self.field = field
        self.message = message

    def to_dict(self) -> dict:
        return {"step": self.step, "field": self.field, "message": self.message}
