from __future__ import annotations

from flask import Blueprint, request

from bridge.blueprints.api._common import get_container
from bridge.utils.http import error_response, safe_route, success_response
from bridge.utils.time import iso_now

status_api = Blueprint("status_api", __name__)

MAX_HISTORY_LIMIT = 1000


@status_api.get("/status")
@safe_route("Failed to read bridge status")
def get_status():
    data = get_container().status()
    data["timestamp"] = iso_now()
    return success_response(data)


@status_api.get("/history")
@safe_route("Failed to read telemetry history")
def get_history():
    """Most recent admitted samples, oldest first, in the ``telemetry`` event shape."""
    limit = request.args.get("limit", type=int)
    if limit is not None and not 0 < limit <= MAX_HISTORY_LIMIT:
        return error_response(f"limit must be between 1 and {MAX_HISTORY_LIMIT}", 400)

    samples = get_container().history.recent(limit)
    return success_response({"count": len(samples), "samples": [sample.to_wire() for sample in samples]})
