# sim/cli.py
"""
Headless recipe run against the simulated reactor.

    python -m sim.cli [recipe.json]

Prints one status line per second until the run completes (Ctrl+C stops).
"""
import os
import sys
import time

from sim.reactor_sim import SimulatedReactor
from system import services
from system.device import device_init
from system.utils import format_duration


def main():
    recipe_file = sys.argv[1] if len(sys.argv) > 1 else "config/recipe_set1.json"
    rate = float(os.environ.get("REACTOR_SIM_JACKET_RATE", "2.0"))

    device_init.init_preferences_service()
    device_init.init_recipe_store(recipe_file)
    services.transport = SimulatedReactor(jacket_rate=rate)
    device_init.init_sensor_feed()
    device_init.init_dispatcher()
    device_init.init_sequencer()
    device_init.start_session()

    print("[SIMULATOR CLI] Starting run (Ctrl+C to stop)")
    print(f"[SIMULATOR CLI] Recipe: {recipe_file}")
    print(f"[SIMULATOR CLI] Jacket rate: {rate} degC/s")
    print("-----------------------------------------------------------")

    ok, msg = services.sequencer_actions.start()
    print(f"[SIMULATOR CLI] {msg}")
    if not ok:
        device_init.shutdown()
        return 1

    try:
        while services.sequencer.is_running():
            snap = services.sequencer.snapshot()
            sample = snap["sample"] or {}
            print(f"step {snap['current_step']} {snap['phase']:<22} "
                  f"left {format_duration(snap['remaining_seconds'])} "
                  f"TR={sample.get('tr', 0):6.1f} TJ={sample.get('tj', 0):6.1f} "
                  f"RPM={sample.get('rpm', 0):6.0f}")
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n[SIMULATOR CLI] Stopping...")
        services.sequencer.stop()

    print(f"[SIMULATOR CLI] done steps: {sorted(services.sequencer.done_steps)}")
    device_init.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
