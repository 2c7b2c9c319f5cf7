from reactor.sequencer.actions import SequencerActions


def test_actions_report_outcomes(rig):
    actions = SequencerActions(rig.seq)

    assert actions.start() == (False, "No step is enabled")
    assert actions.pause() == (False, "Nothing to pause")

    rig.recipe.update_step(2, enabled=True)
    assert actions.start() == (True, "Step 2 running")
    assert actions.start() == (False, "Program already running")
    assert actions.perform_action("pause") == (True, "Paused")
    assert actions.perform_action("resume") == (True, "Resumed")
    assert actions.perform_action("stop") == (True, "Stopped")
    assert rig.state.is_started is False


def test_unknown_action(rig):
    assert SequencerActions(rig.seq).perform_action("launch") == (False, "Unknown action")
