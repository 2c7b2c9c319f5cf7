import pytest
from flask import Flask

from reactor.routes import reactor_bp
from reactor.sequencer.actions import SequencerActions
from reactor.sequencer.phase import Phase
from reactor.sse.live_status_service import LiveStatusService, get_live_snapshots
from system import services


@pytest.fixture
def client(rig, monkeypatch):
    monkeypatch.setattr(services, "recipe_store", rig.recipe)
    monkeypatch.setattr(services, "sensor_feed", rig.feed)
    monkeypatch.setattr(services, "sequencer", rig.seq)
    monkeypatch.setattr(services, "sequencer_actions", SequencerActions(rig.seq))

    app = Flask(__name__)
    app.register_blueprint(reactor_bp, url_prefix="/reactor")
    return app.test_client()


def test_get_recipe_lists_steps_and_statuses(client):
    res = client.get("/reactor/api/recipe")
    data = res.get_json()

    assert res.status_code == 200
    assert data["ok"] is True
    assert [s["index"] for s in data["steps"]] == list(range(1, 9))
    assert data["statuses"] == ["Wait"] * 8
    assert data["limits"]["temp_max"] == 250.0


def test_update_step_returns_flags(client, rig):
    res = client.post("/reactor/api/recipe/step/2",
                      json={"enabled": True, "duration_minutes": "90", "target_temperature": 60})
    data = res.get_json()

    assert res.status_code == 200
    assert data["step"]["duration_minutes"] == 59
    assert [f["field"] for f in data["flags"]] == ["duration_minutes"]
    assert rig.recipe.step(2).enabled is True


@pytest.mark.parametrize("url, body", [
    ("/reactor/api/recipe/step/9", {"enabled": True}),
    ("/reactor/api/recipe/step/1", {"colour": "red"}),
    ("/reactor/api/recipe/step/1", {}),
])
def test_update_step_rejects_bad_requests(client, url, body):
    res = client.post(url, json=body)
    assert res.status_code == 400
    assert res.get_json()["ok"] is False


def test_start_without_enabled_step_reports_error(client):
    res = client.post("/reactor/api/program/start")
    data = res.get_json()

    assert res.status_code == 200
    assert data["ok"] is False
    assert "No step is enabled" in data["message"]


def test_program_control_flow(client, rig):
    rig.recipe.update_step(1, enabled=True)
    rig.recipe.update_step(3, enabled=True)

    assert client.post("/reactor/api/program/start", json={"step": 3}).get_json()["ok"] is True
    state = client.get("/reactor/api/program/state").get_json()
    assert state["current_step"] == 3
    assert state["phase"] == Phase.COUNTING_DOWN

    assert client.post("/reactor/api/program/pause").get_json()["ok"] is True
    assert client.post("/reactor/api/program/skip").get_json()["ok"] is False
    assert client.post("/reactor/api/program/resume").get_json()["ok"] is True
    assert client.post("/reactor/api/program/skip").get_json()["ok"] is True

    state = client.get("/reactor/api/program/state").get_json()
    assert state["current_step"] == 1
    assert state["done_steps"] == [3]

    assert client.post("/reactor/api/program/skip").get_json()["ok"] is True
    state = client.get("/reactor/api/program/state").get_json()
    assert state["phase"] == Phase.IDLE
    assert state["done_steps"] == [1, 3]
    assert state["statuses"][:3] == ["Done", "Wait", "Done"]

    assert client.post("/reactor/api/program/reset").get_json()["ok"] is True
    assert client.get("/reactor/api/program/state").get_json()["done_steps"] == []


def test_unknown_action_and_bad_step(client):
    assert client.post("/reactor/api/program/launch").status_code == 404
    assert client.post("/reactor/api/program/start", json={"step": "one"}).status_code == 400


def test_auto_mode_toggle_blocks_start(client, rig):
    rig.recipe.update_step(1, enabled=True)

    assert client.post("/reactor/api/program/auto", json={}).status_code == 400
    assert client.post("/reactor/api/program/auto", json={"enabled": False}).get_json()["ok"] is True

    res = client.post("/reactor/api/program/start").get_json()
    assert res["ok"] is False
    assert "Auto mode" in res["message"]
    assert rig.state.auto_mode is False


def test_sensor_injection(client, rig):
    assert client.post("/reactor/api/sensor", json={"values": [30, 31, 100, 22]}).status_code == 200
    assert rig.feed.latest().tj == 31.0
    assert client.post("/reactor/api/sensor", json={"values": [1, 2]}).status_code == 400


def test_live_status_service_caches_snapshots(rig, monkeypatch):
    svc = LiveStatusService()
    monkeypatch.setattr(services, "live_status_service", svc)
    svc.attach_sequencer(rig.seq)
    svc.attach_feed(rig.feed)
    rig.recipe.update_step(1, enabled=True)

    rig.seq.start()
    rig.feed.on_sample_received([40, 41, 0, 20])

    program, sample = get_live_snapshots()
    assert program["current_step"] == 1
    assert program["phase"] == Phase.COUNTING_DOWN
    assert sample["tj"] == 41.0


def test_live_snapshots_empty_without_service(monkeypatch):
    monkeypatch.setattr(services, "live_status_service", None)
    assert get_live_snapshots() == ({}, {})
