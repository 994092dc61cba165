"""PIR Display - HTTP host transport.

The host side of the presence core: a kiosk front-end (or anything else
on the LAN) receives USER_PRESENCE / ALWAYS_ON / ALWAYS_OFF / SHOW_ALERT
/ SENSOR_ERROR over Server-Sent Events and sends configuration and
"wake now" requests back over REST.

Routes:
    GET  /health              liveness + started flag
    GET  /api/state           controller snapshot
    POST /api/wake            wake the display now (SCREEN_WAKEUP)
    POST /api/config          one-time configuration event (CONFIG)
    GET  /api/events/stream   SSE stream of upward events

Requests never touch the core directly: they are queued onto the
MainLoop thread with call_soon_threadsafe().
"""

import json
import logging
import time

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from core import events

logger = logging.getLogger(__name__)


def _sse_frame(topic, payload):
    return f"event: {topic}\ndata: {json.dumps(payload)}\n\n"


def create_app(controller, loop, bus):
    """Create the Flask application bound to a controller and its loop."""
    app = Flask(__name__)
    CORS(app)  # kiosk front-end may be served from another origin

    # ─── Routes: status ───

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "started": controller.started,
            "time": time.time(),
        })

    @app.route("/api/state")
    def state():
        return jsonify(controller.snapshot())

    # ─── Routes: inbound requests ───

    @app.route("/api/wake", methods=["POST"])
    def wake():
        if not controller.started:
            return jsonify({"error": "not configured"}), 409
        loop.call_soon_threadsafe(controller.handle_notification, events.SCREEN_WAKEUP)
        return jsonify({"status": "queued"}), 202

    @app.route("/api/config", methods=["POST"])
    def configure():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "expected a JSON object"}), 400
        if controller.started:
            logger.info("Config request ignored: already configured")
            return jsonify({"error": "already configured"}), 409
        loop.call_soon_threadsafe(controller.handle_notification, events.CONFIG, payload)
        return jsonify({"status": "queued"}), 202

    # ─── Routes: SSE event stream ───

    @app.route("/api/events/stream")
    def event_stream():
        """SSE endpoint streaming upward events, starting with current state."""
        def generate():
            # Register before the snapshot so nothing published in between is lost
            q = bus.open_stream()
            try:
                latest = bus.get_latest()
                for topic in events.UPWARD_EVENTS:
                    if topic in latest and topic != events.SHOW_ALERT:
                        yield _sse_frame(topic, latest[topic])

                for topic, payload in bus.sse_stream(q=q):
                    if topic == "keepalive":
                        yield ": keepalive\n\n"
                        continue
                    if topic not in events.UPWARD_EVENTS:
                        continue
                    try:
                        yield _sse_frame(topic, payload)
                    except (TypeError, ValueError) as exc:
                        logger.debug("SSE serialize error for %s: %s", topic, exc)
            finally:
                bus.close_stream(q)

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    return app
