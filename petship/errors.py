# petship/errors.py
from __future__ import annotations

from flask import current_app, jsonify
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm.exc import StaleDataError

from .extensions import db


class PetshipError(Exception):
    """Base for errors that map onto a JSON error response."""

    status_code = 400
    error = "bad_request"

    def __init__(self, message: str, *, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.error, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class NotFoundError(PetshipError):
    status_code = 404
    error = "not_found"


class UnauthorizedError(PetshipError):
    status_code = 403
    error = "forbidden"


class ValidationError(PetshipError):
    status_code = 400
    error = "validation_error"


class ConflictError(PetshipError):
    status_code = 409
    error = "conflict"


def _error_response(status: int, error: str, message: str, details=None):
    body = {"error": error, "message": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def register_error_handlers(app) -> None:
    @app.errorhandler(PetshipError)
    def petship_error(e: PetshipError):
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SchemaValidationError)
    def schema_error(e: SchemaValidationError):
        db.session.rollback()
        details = [
            {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in e.errors()
        ]
        return _error_response(400, "validation_error", "Invalid request body.", details)

    @app.errorhandler(StaleDataError)
    def stale_data(e: StaleDataError):
        db.session.rollback()
        current_app.logger.warning("Concurrent update rejected: %s", e)
        return _error_response(409, "conflict", "Record was modified concurrently. Retry the request.")

    @app.errorhandler(401)
    def unauthenticated(e):
        return _error_response(401, "unauthenticated", "Login required.")

    @app.errorhandler(403)
    def forbidden(e):
        return _error_response(403, "forbidden", "You do not have access to this resource.")

    @app.errorhandler(404)
    def not_found(e):
        return _error_response(404, "not_found", "Resource not found.")

    @app.errorhandler(405)
    def method_not_allowed(e):
        return _error_response(405, "method_not_allowed", "Method not allowed.")

    @app.errorhandler(413)
    def too_large(e):
        return _error_response(413, "payload_too_large", "Uploaded file is too large.")

    @app.errorhandler(429)
    def ratelimit_handler(e):
        return _error_response(429, "rate_limited", "Too many requests. Please try again later.")
