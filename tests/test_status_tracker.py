from reactor.recipe import CompletionStatus, STEP_COUNT
from reactor.sequencer.status_tracker import StatusTracker

W, R, D = CompletionStatus.WAIT, CompletionStatus.RUN, CompletionStatus.DONE


def test_refresh_classifies_steps(recipe):
    tracker = StatusTracker(recipe)

    tracker.refresh(current_step=3, is_started=True, is_paused=False, done_steps={1, 2})

    assert tracker.statuses() == [D, D, R, W, W, W, W, W]


def test_paused_current_step_shows_wait(recipe):
    tracker = StatusTracker(recipe)

    tracker.refresh(current_step=2, is_started=True, is_paused=True, done_steps={1})

    assert tracker.status(2) is W


def test_changes_are_persisted(recipe):
    tracker = StatusTracker(recipe)
    tracker.refresh(current_step=1, is_started=True, is_paused=False, done_steps=())

    assert recipe.load_statuses()[0] is R


def test_unchanged_refresh_does_not_write(recipe, monkeypatch):
    tracker = StatusTracker(recipe)
    writes = []
    monkeypatch.setattr(recipe, "save_statuses", writes.append)

    assert tracker.refresh(0, False, False, ()) is False
    assert tracker.refresh(1, True, False, ()) is True
    assert tracker.refresh(1, True, False, ()) is False

    assert len(writes) == 1


def test_reset_and_recovery(recipe):
    tracker = StatusTracker(recipe)
    tracker.refresh(current_step=4, is_started=True, is_paused=False, done_steps={1, 3})

    assert StatusTracker(recipe).done_steps() == {1, 3}

    tracker.reset()
    assert tracker.statuses() == [W] * STEP_COUNT
    assert StatusTracker(recipe).done_steps() == set()
