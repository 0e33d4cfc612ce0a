"""Run the greenhouse bridge (Flask + Socket.IO + MQTT link)."""

from bridge.server import main

if __name__ == "__main__":
    raise SystemExit(main())
