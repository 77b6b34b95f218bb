# cashbook_backend/errors.py
"""
Error taxonomy shared by every blueprint.

Handlers raise one of these; register_error_handlers() turns them into the
JSON envelope ``{"error": <message>}`` with the matching status code.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger("cashbook-backend")

RATE_LIMIT_MESSAGE = "Too many requests — please wait a minute and try again."


class AppError(Exception):
    status = 500
    message = "Server error"

    def __init__(self, message=None, status=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        if status:
            self.status = status


class ValidationError(AppError):
    status = 400
    message = "Invalid request"


class AuthError(AppError):
    status = 401
    message = "Invalid credentials"


class ForbiddenError(AppError):
    status = 403
    message = "Permission denied"


class NotFoundError(AppError):
    status = 404
    message = "Not found"


class ConflictError(AppError):
    status = 409
    message = "Already exists"


class RateLimitError(AppError):
    status = 429
    message = RATE_LIMIT_MESSAGE


class ServerError(AppError):
    status = 500
    message = "Server error"


def error_response(message, status):
    return jsonify({"error": message}), status


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        if err.status >= 500:
            logger.error(f"{type(err).__name__}: {err.message}")
            message = err.message if isinstance(err, ServerError) else "Server error"
            return error_response(message, err.status)
        return error_response(err.message, err.status)

    @app.errorhandler(429)
    def handle_rate_limit(err):
        return error_response(RATE_LIMIT_MESSAGE, 429)

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return error_response(err.description or err.name, err.code)

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        logger.exception("Unhandled error")
        return error_response("Server error", 500)
