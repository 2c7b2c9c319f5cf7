from reactor.sequencer.program_state import ProgramState


def test_tick_decrements_and_floors_at_zero():
    state = ProgramState()
    state.start(1, 3)

    assert state.tick() == 2
    assert state.tick() == 1
    assert state.tick() == 0
    assert state.tick() == 0
    assert state.remaining_seconds == 0


def test_tick_ignored_when_idle_or_paused():
    state = ProgramState()
    assert state.tick() == 0

    state.start(2, 10)
    state.pause()
    state.tick()

    assert state.remaining_seconds == 10


def test_countdown_finished_fires_exactly_once():
    state = ProgramState()
    finished = []
    state.subscribe_countdown_finished(finished.append)
    state.start(4, 2)

    for _ in range(5):
        state.tick()

    assert finished == [4]


def test_every_mutation_notifies_observers():
    state = ProgramState()
    seen = []
    state.subscribe(lambda s: seen.append(s.to_dict()))

    state.start(1, 60)
    state.tick()
    state.pause()
    state.resume()
    state.set_auto_mode(False)
    state.reset()

    assert len(seen) == 6
    assert seen[0]["remaining_seconds"] == 60
    assert seen[1]["remaining_seconds"] == 59
    assert seen[2]["is_paused"] is True
    assert seen[4]["auto_mode"] is False
    assert seen[5] == {"current_step": 0, "remaining_seconds": 0, "is_started": False,
                       "is_paused": False, "auto_mode": False}


def test_pause_resume_only_apply_in_matching_state():
    state = ProgramState()
    assert state.pause() is False
    assert state.resume() is False

    state.start(1, 30)
    assert state.resume() is False
    assert state.pause() is True
    assert state.pause() is False
    assert state.is_active is False
    assert state.resume() is True
    assert state.is_active is True


def test_expire_forces_countdown_finished():
    state = ProgramState()
    finished = []
    state.subscribe_countdown_finished(finished.append)

    assert state.expire() is False

    state.start(3, 100)
    assert state.expire() is True
    assert state.remaining_seconds == 0
    assert finished == [3]
    assert state.expire() is False


def test_failing_observer_is_isolated():
    state = ProgramState()
    calls = []

    def broken(_):
        raise RuntimeError("boom")

    state.subscribe(broken)
    state.subscribe(lambda s: calls.append(s.current_step))
    state.start(5, 10)

    assert calls == [5]
