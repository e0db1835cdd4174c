"""
Error taxonomy for the ReWear settlement engine and API.

Every business failure is a ``ReWearError`` carrying a stable ``code`` and the
HTTP status it maps to. The Flask handlers registered here render them as::

    {"error": "Swap request not found", "code": "NOT_FOUND"}
"""
import logging

from flask import Flask, jsonify
from marshmallow import ValidationError

logger = logging.getLogger(__name__)


class ReWearError(Exception):
    """Base exception for all ReWear business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "REWEAR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(ReWearError):
    """Referenced swap request, item or user does not exist."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, "NOT_FOUND")


class AuthenticationRequiredError(ReWearError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, "AUTH_REQUIRED")


class NotAuthorizedError(ReWearError):
    """Caller is not the permitted party for the operation."""

    status_code = 403

    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, "NOT_AUTHORIZED")


class InvalidTransitionError(ReWearError):
    """Source-state precondition of an operation is not met."""

    status_code = 409

    def __init__(self, resource: str, from_status: str, operation: str, message: str | None = None):
        self.from_status = from_status
        self.operation = operation
        message = message or f"Cannot {operation} {resource} in '{from_status}' status"
        super().__init__(message, "INVALID_TRANSITION")


class InvalidSwapRequestError(ReWearError):
    """Structural invariant of a swap request is violated."""

    status_code = 400

    def __init__(self, message: str, code: str = "INVALID_SWAP_REQUEST"):
        super().__init__(message, code)


class SelfSwapNotAllowedError(InvalidSwapRequestError):
    def __init__(self, message: str = "Cannot request swap for your own item"):
        super().__init__(message, "SELF_SWAP_NOT_ALLOWED")


class InvalidItemStateError(InvalidSwapRequestError):
    """Item is not in the status a transition requires."""

    def __init__(self, item_id: int, status: str | None, expected: str):
        self.item_id = item_id
        self.status = status
        message = f"Item {item_id} is '{status}', expected '{expected}'"
        super().__init__(message, "INVALID_ITEM_STATE")


class InsufficientFundsError(ReWearError):
    """Points balance is lower than the amount being debited."""

    status_code = 422

    def __init__(self, user_id: int, required: int, current: int | None = None):
        self.user_id = user_id
        self.required = required
        self.current = current
        message = f"Insufficient points. Required: {required}"
        if current is not None:
            message = f"Insufficient points. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_FUNDS")


class DuplicateRequestError(ReWearError):
    status_code = 409

    def __init__(self, message: str = "You already have a pending swap request for this item"):
        super().__init__(message, "DUPLICATE_REQUEST")


class StorageError(ReWearError):
    """Infrastructure failure; surfaced as a generic fatal error."""

    status_code = 500

    def __init__(self, message: str = "An unexpected storage error occurred"):
        super().__init__(message, "STORAGE_ERROR")


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ReWearError)
    def _handle_rewear_error(err: ReWearError):
        if err.status_code >= 500:
            logger.error("API Error [%s]: %s", err.code, err.message)
        return jsonify({"error": err.message, "code": err.code}), err.status_code

    @app.errorhandler(ValidationError)
    def _handle_validation_error(err: ValidationError):
        return jsonify({"error": "Validation errors", "code": "VALIDATION_ERROR", "errors": err.messages}), 400
