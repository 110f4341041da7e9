"""
WorkGuard - Exception Handling Utilities

Exception hierarchy for the compliance engine and the Flask handlers that
turn it into JSON error responses.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException


class WorkGuardException(Exception):
    """Base exception class for WorkGuard."""

    def __init__(
        self,
        message: str,
        code: str = "WORKGUARD_ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class ValidationError(WorkGuardException):
    """Data validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, code="VALIDATION_ERROR", status_code=400, details=details
        )
        self.field = field


class NotFoundError(WorkGuardException):
    """Resource not found errors."""

    def __init__(
        self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None
    ):
        message = f"{resource} not found"
        super().__init__(
            message=message, code="NOT_FOUND", status_code=404, details=details
        )


class ConflictError(WorkGuardException):
    """Resource conflict errors."""

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, code="CONFLICT", status_code=409, details=details
        )


class BusinessLogicError(WorkGuardException):
    """Business logic violation errors."""

    def __init__(
        self,
        message: str,
        code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, status_code=422, details=details)


class AllocationRejectedError(BusinessLogicError):
    """Allocation refused because the worker is at critical risk."""

    def __init__(
        self,
        score: int,
        consecutive_days: int,
        days_in_month: int,
        months_with_client: int,
        level: str = "critical",
    ):
        message = (
            f"Allocation blocked: worker at critical labor risk (score: {score}). "
            f"{consecutive_days} consecutive days and {days_in_month} days this month "
            f"at this client."
        )
        super().__init__(
            message=message,
            code="ALLOCATION_REJECTED",
            details={
                "score": score,
                "level": level,
                "consecutiveDays": consecutive_days,
                "daysInMonth": days_in_month,
                "monthsWithClient": months_with_client,
            },
        )
        self.score = score
        self.consecutive_days = consecutive_days
        self.days_in_month = days_in_month
        self.months_with_client = months_with_client


class WorkerBlockedError(BusinessLogicError):
    """Operation refused because the worker is blocked."""

    def __init__(self, worker_id: int, reason: Optional[str] = None):
        super().__init__(
            message=f"Worker {worker_id} is blocked and cannot be allocated",
            code="WORKER_BLOCKED",
            details={"workerId": worker_id, "blockReason": reason},
        )
        self.worker_id = worker_id


class DatabaseError(WorkGuardException):
    """Database operation errors."""

    def __init__(
        self,
        message: str = "Database operation failed",
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, code="DATABASE_ERROR", status_code=500, details=details
        )
        self.operation = operation


def create_error_response(
    error: Exception, request_id: Optional[str] = None, include_traceback: bool = False
) -> Tuple[Dict[str, Any], int]:
    """
    Create standardized error response.

    Args:
        error: Exception instance
        request_id: Optional request ID for tracking
        include_traceback: Include traceback in response (development only)

    Returns:
        Tuple of (response_dict, status_code)
    """
    timestamp = datetime.now(timezone.utc).isoformat()

    if isinstance(error, WorkGuardException):
        response = {
            "error": {
                "code": error.code,
                "message": error.message,
                "timestamp": timestamp,
            }
        }
        if error.details:
            response["error"]["details"] = error.details
        status_code = error.status_code

    elif isinstance(error, HTTPException):
        response = {
            "error": {
                "code": "HTTP_ERROR",
                "message": error.description or "HTTP error occurred",
                "timestamp": timestamp,
            }
        }
        status_code = error.code

    else:
        response = {
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal server error occurred",
                "timestamp": timestamp,
            }
        }
        if include_traceback:
            response["error"]["original_message"] = str(error)
        status_code = 500

    if request_id:
        response["error"]["request_id"] = request_id

    if include_traceback and not isinstance(error, HTTPException):
        response["error"]["traceback"] = traceback.format_exc()

    return response, status_code


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the Flask application."""

    logger = logging.getLogger(__name__)

    @app.errorhandler(WorkGuardException)
    def handle_workguard_exception(error: WorkGuardException):
        """Handle WorkGuard exceptions."""
        request_id = request.headers.get("X-Request-Id")

        if error.status_code >= 500:
            logger.error(
                f"WorkGuard error: {error.code} - {error.message}",
                extra={
                    "request_id": request_id,
                    "error_code": error.code,
                    "details": error.details,
                },
            )
        else:
            logger.warning(
                f"WorkGuard warning: {error.code} - {error.message}",
                extra={
                    "request_id": request_id,
                    "error_code": error.code,
                    "details": error.details,
                },
            )

        response, status_code = create_error_response(
            error, request_id=request_id, include_traceback=app.debug
        )
        return jsonify(response), status_code

    @app.errorhandler(SchemaValidationError)
    def handle_schema_validation_error(error: SchemaValidationError):
        """Handle marshmallow validation errors."""
        request_id = request.headers.get("X-Request-Id")

        logger.warning(
            f"Validation error: {error.messages}",
            extra={"request_id": request_id, "validation_errors": error.messages},
        )

        validation_error = ValidationError(
            message="Input validation failed",
            details={"validation_errors": error.messages},
        )
        response, status_code = create_error_response(
            validation_error, request_id=request_id
        )
        return jsonify(response), status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error: IntegrityError):
        """Handle database integrity constraint errors."""
        request_id = request.headers.get("X-Request-Id")

        logger.error(
            f"Database integrity error: {str(error)}",
            extra={"request_id": request_id, "original_error": str(error.orig)},
        )

        original = str(error.orig).lower()
        if "unique" in original or "duplicate key" in original:
            db_error = ConflictError(
                message="Resource already exists",
                details={"constraint": "unique_constraint"},
            )
        elif "foreign key" in original:
            db_error = ValidationError(
                message="Referenced resource does not exist",
                details={"constraint": "foreign_key_constraint"},
            )
        else:
            db_error = DatabaseError(
                message="Database constraint violation",
                details={"constraint": "integrity_constraint"},
            )

        response, status_code = create_error_response(db_error, request_id=request_id)
        return jsonify(response), status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_sqlalchemy_error(error: SQLAlchemyError):
        """Handle general SQLAlchemy errors."""
        request_id = request.headers.get("X-Request-Id")

        logger.error(f"Database error: {str(error)}", extra={"request_id": request_id})

        db_error = DatabaseError(
            message="Database operation failed",
            details={"error_type": type(error).__name__},
        )
        response, status_code = create_error_response(db_error, request_id=request_id)
        return jsonify(response), status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        """Handle HTTP exceptions."""
        request_id = request.headers.get("X-Request-Id")

        logger.warning(
            f"HTTP error {error.code}: {error.description}",
            extra={"request_id": request_id, "status_code": error.code},
        )

        response, status_code = create_error_response(error, request_id=request_id)
        return jsonify(response), status_code
