import threading
from types import SimpleNamespace

import pytest

from reactor.dispatch import SetpointDispatcher
from reactor.errors import TransportError
from reactor.recipe import RecipeStore
from reactor.sensor_feed import SensorFeed
from reactor.sequencer.engine import StepSequencer
from reactor.sequencer.program_state import ProgramState
from system.comm.iface import TransportInterface
from system.preferences import Preferences


class RecordingTransport(TransportInterface):
    """Keeps every frame; raises TransportError for commands listed in fail_on."""

    def __init__(self, fail_on=()):
        super().__init__()
        self.frames = []
        self.fail_on = set(fail_on)
        self._lock = threading.Lock()

    def send(self, frame: bytes) -> bool:
        if frame[1] in self.fail_on:
            raise TransportError("link down")
        with self._lock:
            self.frames.append(bytes(frame))
        return True

    def commands(self):
        with self._lock:
            return [f[1] for f in self.frames]


class ManualTask:
    """PeriodicTask stand-in; the test calls fire() instead of waiting on a timer."""

    def __init__(self, name, interval, callback):
        self.name = name
        self.interval = interval
        self._callback = callback
        self.running = False
        self.generation = 0

    def start(self):
        if not self.running:
            self.running = True
            self.generation += 1
        return self.generation

    def stop(self):
        if self.running:
            self.running = False
            self.generation += 1

    def is_running(self):
        return self.running

    def is_current(self, generation):
        return self.running and generation == self.generation

    def join(self, timeout=2.0):
        pass

    def fire(self, times=1):
        for _ in range(times):
            if not self.running:
                return
            self._callback(self.generation)


class TaskRegistry:
    def __init__(self):
        self.tasks = {}

    def __call__(self, name, interval, callback):
        task = ManualTask(name, interval, callback)
        self.tasks[name] = task
        return task

    def __getitem__(self, name):
        return self.tasks[name]


@pytest.fixture
def recipe_path(tmp_path):
    return tmp_path / "recipe_set1.json"


@pytest.fixture
def recipe(recipe_path):
    return RecipeStore(Preferences(str(recipe_path), valid_keys=None))


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def dispatcher(transport):
    d = SetpointDispatcher(transport, thermostat_settle=0, setpoint_settle=0)
    d.start()
    yield d
    d.stop()


@pytest.fixture
def make_rig(recipe, dispatcher, transport):
    def _make(log_dir=None):
        tasks = TaskRegistry()
        state = ProgramState()
        feed = SensorFeed()
        seq = StepSequencer(recipe, state, feed, dispatcher, task_factory=tasks, log_dir=log_dir)
        return SimpleNamespace(seq=seq, state=state, feed=feed, tasks=tasks, recipe=recipe,
                               dispatcher=dispatcher, transport=transport)
    return _make


@pytest.fixture
def rig(make_rig):
    return make_rig()


def sample(tr=20.0, tj=20.0, rpm=0.0, ext=20.0):
    return [tr, tj, rpm, ext]
