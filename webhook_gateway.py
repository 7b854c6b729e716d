"""
Webhook capture gateway.

Hands out per-client callback URLs, answers the hub.* subscription handshake,
stores every JSON delivery and renders the collected history as HTML.

Run:
    python webhook_gateway.py
"""

import json
import logging

from flask import Flask, Response, abort, request

import identifier_issuer
from event_store import EventStore, StorageError, build_store
from gateway_config import GatewayConfig, load_config
from history_render import render_history

logger = logging.getLogger(__name__)

SUBSCRIBE_MODE = "subscribe"


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _plain(body: str, status: int = 200) -> Response:
    return Response(body, status=status, mimetype="text/plain")


def create_app(store: EventStore, config: GatewayConfig) -> Flask:
    app = Flask(__name__)

    def require_events(identifier: str):
        if not identifier:
            abort(404)

        events = store.get(identifier)
        if events is None:
            abort(404)

        return events

    # -----------------------------
    # ERRORS
    # -----------------------------

    @app.errorhandler(404)
    def not_found(e):
        return _plain("Not found", 404)

    @app.errorhandler(401)
    def unauthorized(e):
        return _plain("Unauthorized", 401)

    @app.errorhandler(StorageError)
    def storage_failure(e):
        logger.exception("Event store failure: %s", e)
        return _plain("Storage unavailable", 500)

    # -----------------------------
    # ROUTES
    # -----------------------------

    @app.route("/", methods=["GET"])
    def index():
        return _plain("Nothing here")

    @app.route("/register", methods=["GET"])
    def register():
        key = request.args.get("key")

        if key and key.casefold() != config.registration_secret.casefold():
            logger.info("Registration refused for %s", request.remote_addr)
            abort(401)

        identifier = identifier_issuer.issue()
        store.set(identifier, [])

        base_url = f"{config.url_scheme}://{request.host}/{identifier}"
        callback_url = f"{base_url}/events"
        history_url = f"{base_url}/events_history"

        logger.info("Registered %s for %s", identifier, request.remote_addr)

        return _plain(
            f"Register Webhooks at Callback URL: {callback_url}\n"
            f"View Webhook Events at URL: {history_url}"
        )

    @app.route("/<identifier>/events", methods=["GET"])
    def verify(identifier):
        require_events(identifier)

        mode = request.args.get("hub.mode")
        challenge = request.args.get("hub.challenge")
        verify_token = request.args.get("hub.verify_token")

        logger.info(
            "Events challenge... mode: %s, %s, %s from %s",
            mode, challenge, verify_token, request.remote_addr,
        )

        if (
            mode == SUBSCRIBE_MODE
            and challenge
            and verify_token == config.verify_token
        ):
            logger.info("Events challenge success for %s", request.remote_addr)
            return _plain(challenge)

        logger.info("Events challenge failure for %s", request.remote_addr)
        return _plain("", 400)

    @app.route("/<identifier>/events", methods=["POST"])
    def receive(identifier):
        require_events(identifier)

        try:
            payload = json.loads(
                request.get_data(as_text=True), parse_constant=_reject_constant
            )
        except ValueError:
            return _plain("Malformed JSON payload", 400)

        data = json.dumps(payload, separators=(",", ":"))

        if not store.append(identifier, data):
            abort(404)

        logger.info(
            "Stored event for %s (%d bytes)", identifier, len(data.encode("utf-8"))
        )
        return _plain("")

    @app.route("/<identifier>/events_history", methods=["GET"])
    def events_history(identifier):
        events = require_events(identifier)
        return Response(render_history(events), status=200, mimetype="text/html")

    return app


# -----------------------------
# MAIN
# -----------------------------


def main() -> None:
    config = load_config()

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = build_store(config)
    app = create_app(store, config)
    app.run(host=config.host, port=config.port, threaded=True)


if __name__ == "__main__":
    main()
