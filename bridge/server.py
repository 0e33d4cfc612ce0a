"""Process entry point: build the app with the runtime started and serve it."""

import logging
import sys

from bridge import create_app
from bridge.extensions import socketio
from bridge.config import load_config


def main() -> int:
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8")

    config = load_config()
    app = create_app(start_runtime=True)

    logging.info("Bridge listening on http://%s:%s", config.host, config.port)
    try:
        socketio.run(
            app,
            host=config.host,
            port=config.port,
            debug=config.DEBUG,
            use_reloader=False,
            allow_unsafe_werkzeug=True,
        )
    except KeyboardInterrupt:
        logging.info("Server stopped by user")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
