import json
import time

from flask import Blueprint, jsonify, Response, stream_with_context, request

from system import services
from system.log_utils import verbose, debug, info, warn, error
from reactor.sse.live_status_service import get_live_snapshots

reactor_bp = Blueprint("reactor", __name__)

PROGRAM_ACTIONS = ("start", "pause", "resume", "stop", "reset", "skip")


# ----------------------------------------------------------------------
# Recipe
# ----------------------------------------------------------------------
@reactor_bp.route("/api/recipe")
def get_recipe() -> tuple[Response, int]:
    recipe = services.recipe_store
    data = recipe.to_dict()
    data["statuses"] = services.sequencer.status.to_list()
    data["flags"] = [f.to_dict() for f in recipe.validate()]
    data["ok"] = True
    return jsonify(data), 200


@reactor_bp.route("/api/recipe/step/<int:n>", methods=["POST"])
def update_step(n: int) -> tuple[Response, int]:
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict) or not data:
        return jsonify({"ok": False, "message": "No fields given"}), 400

    try:
        flags = services.recipe_store.update_step(n, **data)
    except ValueError as e:
        warn(f"[API] step {n} update rejected: {e}")
        return jsonify({"ok": False, "message": str(e)}), 400

    return jsonify({
        "ok": True,
        "step": dict(index=n, **services.recipe_store.step(n).to_dict()),
        "flags": [f.to_dict() for f in flags],
    }), 200


# ----------------------------------------------------------------------
# Program control
# ----------------------------------------------------------------------
@reactor_bp.route("/api/program/state")
def program_state() -> tuple[Response, int]:
    return jsonify(services.sequencer.snapshot()), 200


@reactor_bp.route("/api/program/auto", methods=["POST"])
def program_auto() -> tuple[Response, int]:
    data = request.get_json(silent=True) or {}
    if "enabled" not in data:
        return jsonify({"ok": False, "message": "Missing 'enabled'"}), 400

    ok, msg = services.sequencer_actions.set_auto_mode(bool(data["enabled"]))
    return jsonify({"ok": ok, "message": msg}), 200


@reactor_bp.route("/api/program/<action>", methods=["POST"])
def program_action(action: str) -> tuple[Response, int]:
    if action not in PROGRAM_ACTIONS:
        return jsonify({"ok": False, "message": f"Unknown action '{action}'"}), 404

    kwargs = {}
    if action == "start":
        data = request.get_json(silent=True) or {}
        step = data.get("step")
        if step is not None:
            try:
                kwargs["step"] = int(step)
            except (TypeError, ValueError):
                return jsonify({"ok": False, "message": f"Invalid step {step!r}"}), 400

    try:
        ok, msg = services.sequencer_actions.perform_action(action, **kwargs)
    except Exception as e:
        error(f"[API] {action} failed: {e}")
        return jsonify({"ok": False, "error": str(e)}), 500

    if not ok:
        debug(f"[API] {action} ignored: {msg}")
    return jsonify({"ok": ok, "message": msg}), 200


# ----------------------------------------------------------------------
# Sensor injection
# ----------------------------------------------------------------------
@reactor_bp.route("/api/sensor", methods=["POST"])
def inject_sample() -> tuple[Response, int]:
    data = request.get_json(silent=True) or {}
    accepted = services.sensor_feed.on_sample_received(data.get("values"))
    if not accepted:
        return jsonify({"ok": False, "message": "Sample dropped"}), 400
    return jsonify({"ok": True}), 200


# ----------------------------------------------------------------------
# Server-Sent Events
# ----------------------------------------------------------------------
@reactor_bp.route("/api/program/events")
def sse_events() -> Response:
    """SSE stream of program snapshot and latest sensor sample."""
    def event_stream():
        last_payload = None
        last_beat = time.monotonic()

        while True:
            try:
                program, sample = get_live_snapshots()
                payload = json.dumps({"program": program, "sample": sample}, sort_keys=True)
                if payload != last_payload:
                    yield f"data: {payload}\n\n"
                    last_payload = payload
                    last_beat = time.monotonic()
                    verbose(f"[SSE] sent update: {payload}")
                elif time.monotonic() - last_beat > 10:
                    yield ": keep-alive\n\n"
                    last_beat = time.monotonic()
                    verbose("[SSE] sent keep-alive")

                time.sleep(0.5)

            except GeneratorExit:
                debug("[SSE] client disconnected")
                break
            except Exception as e:
                warn(f"[SSE] stream error: {e}")
                time.sleep(1)

    info("[SSE] client connected")
    return Response(stream_with_context(event_stream()), mimetype="text/event-stream")
