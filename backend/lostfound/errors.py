"""
API error taxonomy and the Flask handlers that render it.

Every error leaves the API in the same envelope used by successful responses:
``{"success": false, "message": "..."}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException

from .extensions import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error carrying an HTTP status and a client-facing message."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}


class ValidationError(ApiError):
    """Missing or malformed input, or a claim invariant the request would break."""

    status_code = 400


class AuthenticationError(ApiError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(ApiError):
    status_code = 403

    def __init__(self, message: str = "Access denied. Insufficient permissions."):
        super().__init__(message)


class NotFoundError(ApiError):
    status_code = 404

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")


def _error_response(message: str, status: int, **extra):
    body: Dict[str, Any] = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(exc: ApiError):
        db.session.rollback()
        return _error_response(exc.message, exc.status_code, **exc.extra)

    @app.errorhandler(SchemaValidationError)
    def _schema_error(exc: SchemaValidationError):
        db.session.rollback()
        return _error_response("Invalid input. Please check the provided data.", 400, errors=exc.messages)

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        if exc.code == 404 and request.url_rule is None:
            return _error_response("Route not found", 404)
        return _error_response(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def _unhandled(exc: Exception):
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        db.session.rollback()
        return _error_response("Something went wrong!", 500)
