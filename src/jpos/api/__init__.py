from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from jpos.domain.errors import (
    AuthorizationError,
    FxUnavailableError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
    ValidationError,
)

from .routes import ALL_BLUEPRINTS

_STATUS = (
    (PermissionDeniedError, 403),
    (AuthorizationError, 401),
    (ValidationError, 400),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (StoreUnavailableError, 503),
    (FxUnavailableError, 503),
)


def create_app(container) -> Flask:
    app = Flask(__name__)
    app.extensions["jpos"] = container

    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)

    def _handler(status: int):
        def handle(exc):
            if status >= 500:
                app.logger.error("request_failed status=%s error=%s", status, exc)
            return jsonify({"error": str(exc)}), status
        return handle

    for exc_type, status in _STATUS:
        app.register_error_handler(exc_type, _handler(status))

    @app.errorhandler(HTTPException)
    def http_error(exc):
        return jsonify({"error": exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def unexpected(exc):
        app.logger.exception("unhandled_error")
        return jsonify({"error": "Internal server error"}), 500

    return app
