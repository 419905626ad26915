"""Provides an app factory for the token management API."""

from typing import Any, Mapping, Optional
import logging

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException, ServiceUnavailable

from . import auth, config, routes, store
from .app_logging import setup_logger
from .store.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


def jsonify_exception(error: HTTPException) -> Response:
    exc_resp = error.get_response()
    response = jsonify(message=error.description)
    response.status_code = exc_resp.status_code
    for header in ('WWW-Authenticate', 'Retry-After'):
        if header in exc_resp.headers:
            response.headers[header] = exc_resp.headers[header]
    return response


def handle_storage_unavailable(error: StorageUnavailable) -> Response:
    logger.error('Storage unavailable: %s', error)
    return jsonify_exception(ServiceUnavailable('Storage is unavailable',
                                                retry_after=1))


def create_web_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Initialize an instance of the token management API."""
    app = Flask('aipfront')
    app.config.from_object(config)
    if overrides:
        app.config.update(overrides)

    if not app.config.get('TESTING'):
        setup_logger(app.config['LOG_LEVEL'], app.config['LOG_JSON'])

    store.init_app(app)
    auth.Auth(app)

    app.register_blueprint(routes.blueprint)
    app.register_error_handler(HTTPException, jsonify_exception)
    app.register_error_handler(StorageUnavailable, handle_storage_unavailable)
    return app
