"""HTTP surface: liveness endpoints and subscription commands."""
import hmac
import logging
import threading

from flask import Flask, jsonify, request

from .errors import (AlreadyTracking, FetchFailed, IdentityNotFound, InvalidIdentityFormat,
                     NotTracking, StalkerError, StorageError)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidIdentityFormat: 400,
    IdentityNotFound: 404,
    AlreadyTracking: 409,
    NotTracking: 409,
    FetchFailed: 502,
    StorageError: 500,
}


def _error_response(error):
    status = ERROR_STATUS.get(type(error), 500)
    return jsonify({"success": False, "error": error.code, "message": str(error)}), status


class ApiServer:
    """Simple Flask-based server exposing liveness and subscription routes."""

    def __init__(self, config, subscriptions):
        """Initialize the API server."""
        self.config = config
        self.subscriptions = subscriptions
        self.app = Flask(__name__)
        self.server_thread = None
        self.running = False

        # Register routes
        self._register_routes()

    def _authorized(self):
        """Check the shared secret sent with a subscription request."""
        secret = request.headers.get("X-Api-Secret") or request.args.get("secret")
        expected = self.config.API_SECRET
        if not expected:
            return True
        return bool(secret) and hmac.compare_digest(secret.encode(), expected.encode())

    def _register_routes(self):
        """Register Flask routes."""

        @self.app.errorhandler(StalkerError)
        def handle_stalker_error(error):
            logger.info("Request failed: %s (%s)", error, error.code)
            return _error_response(error)

        @self.app.before_request
        def check_secret():
            if request.endpoint in ("index", "health_check"):
                return None
            if not self._authorized():
                logger.warning("Unauthorized API access attempt")
                return jsonify({"success": False, "error": "Unauthorized"}), 401
            return None

        @self.app.route("/", methods=["GET"])
        def index():
            """Liveness banner."""
            return "GitHub Stalker is running!", 200

        @self.app.route("/health", methods=["GET"])
        def health_check():
            """Health check endpoint."""
            return jsonify({"status": "ok"}), 200

        @self.app.route("/subscribers/<subscriber_id>/tracked", methods=["GET"])
        def list_tracked(subscriber_id):
            users, repos = self.subscriptions.list_tracked(subscriber_id)
            return jsonify({
                "users": [user.key for user in users],
                "repos": [repo.key for repo in repos],
            }), 200

        @self.app.route("/subscribers/<subscriber_id>/tracked", methods=["POST"])
        def subscribe(subscriber_id):
            payload = request.get_json(silent=True) or {}
            kind = payload.get("kind")
            text = payload.get("identity")
            if not isinstance(text, str):
                raise InvalidIdentityFormat("Missing 'identity' in request body")

            ack = self.subscriptions.subscribe(subscriber_id, text, kind=kind)
            logger.info("Subscriber %s started stalking %s", subscriber_id, ack.identity)
            return jsonify({
                "success": True,
                "identity": ack.identity.key,
                "kind": ack.identity.kind,
                "avatar_url": ack.avatar_url,
            }), 201

        @self.app.route("/subscribers/<subscriber_id>/tracked/<kind>/<path:identity>",
                        methods=["DELETE"])
        def unsubscribe(subscriber_id, kind, identity):
            ack = self.subscriptions.unsubscribe(subscriber_id, identity, kind=kind)
            logger.info("Subscriber %s stopped stalking %s", subscriber_id, ack.identity)
            return jsonify({
                "success": True,
                "identity": ack.identity.key,
                "kind": ack.identity.kind,
            }), 200

    def start(self):
        """Start the API server in a separate thread."""
        if self.running:
            logger.warning("API server is already running")
            return

        if not self.config.API_SECRET:
            logger.warning(
                "API_SECRET is not set, subscription routes are open to anyone!")

        def run_server():
            logger.info("Starting API server on %s:%s",
                        self.config.API_HOST, self.config.API_PORT)
            self.app.run(
                host=self.config.API_HOST,
                port=self.config.API_PORT,
                debug=False,  # Never run in debug mode for production
                use_reloader=False,  # Disable reloader to avoid duplicate processes
                threaded=True
            )

        self.server_thread = threading.Thread(target=run_server)
        # Make thread a daemon so it exits when main thread exits
        self.server_thread.daemon = True
        self.server_thread.start()
        self.running = True
        logger.info("API server thread started")
