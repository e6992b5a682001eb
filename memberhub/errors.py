# memberhub/errors.py

# Structured error responses. Domain code raises werkzeug HTTP exceptions
# (NotFound, BadRequest, Forbidden, Unauthorized, Conflict); storage uniqueness
# violations become Conflict. Stack traces are logged, never returned.

from contextlib import contextmanager
from datetime import datetime, timezone

from flask import current_app, jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import Conflict, HTTPException, InternalServerError, Unauthorized


def error_body(status, message, error=None):
    return {
        'statusCode': status,
        'message': message,
        'error': error,
        'path': request.path,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }


@contextmanager
def conflict_on_integrity_error(message):
    """Translate a storage uniqueness violation into a domain Conflict."""
    try:
        yield
    except IntegrityError as exc:
        raise Conflict(message) from exc


def register_error_handlers(app, jwt):
    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        status = exc.code or 500
        if status >= 500:
            current_app.logger.exception('%s %s -> %s', request.method, request.path, status)
        else:
            current_app.logger.info('%s %s -> %s: %s', request.method, request.path, status, exc.description)
        return jsonify(error_body(status, exc.description, exc.name)), status

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc):
        current_app.logger.warning('%s %s -> 409: %s', request.method, request.path, exc.orig)
        return jsonify(error_body(409, 'Resource already exists', Conflict.name)), 409

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        current_app.logger.exception('%s %s -> 500', request.method, request.path)
        return jsonify(error_body(500, 'Internal server error', InternalServerError.name)), 500

    def _unauthorized(message):
        return jsonify(error_body(401, message, Unauthorized.name)), 401

    @jwt.unauthorized_loader
    def missing_token_callback(reason):
        return _unauthorized('Missing token')

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return _unauthorized('Invalid token')

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return _unauthorized('Session expired')
