from flask import Flask, jsonify
import sys

from system.log_utils import debug, info
debug("starting service", version="1.0.0")

from system.device.device_init import init_all, start_session, shutdown

# Use CLI arg if provided, else the configured port (or the simulator)
port = sys.argv[1] if len(sys.argv) > 1 and sys.argv[1] else None
init_all(port)
start_session()

from reactor.routes import reactor_bp

app = Flask(__name__)

app.register_blueprint(reactor_bp, url_prefix="/reactor")


@app.route('/')
def index():
    return jsonify({"service": "reactor-sequencer", "api": "/reactor/api"})


def cleanup():
    """Stop timers, persist the recipe and close the transport."""
    debug("Cleaning up resources...")
    shutdown()
    debug("Cleanup complete")


import atexit
atexit.register(cleanup)

if __name__ == '__main__':
    info("Serving via Flask development server on http://0.0.0.0:5001")
    app.run(host="0.0.0.0", port=5001, debug=False, use_reloader=False)
