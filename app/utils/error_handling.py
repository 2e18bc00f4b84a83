"""
Error Handling Module for BranchBooks

Every error leaves the API in one envelope:

    {"detail": {"code": ..., "message": ..., "timestamp": ..., "details": ...}}

Services raise AppException subclasses; the handlers registered by
setup_exception_handlers turn those and any stray validation or database
errors into that shape.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    DBAPIError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configure logging
logger = logging.getLogger("branchbooks.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_BALANCE = "INVALID_BALANCE"

    # Authorization Errors (401/403)
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    BRANCH_ACCESS_DENIED = "BRANCH_ACCESS_DENIED"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    ADVANCE_NOT_FOUND = "ADVANCE_NOT_FOUND"
    SALARY_PAYMENT_NOT_FOUND = "SALARY_PAYMENT_NOT_FOUND"
    BONUS_NOT_FOUND = "BONUS_NOT_FOUND"
    PAYABLE_NOT_FOUND = "PAYABLE_NOT_FOUND"
    RECEIVABLE_NOT_FOUND = "RECEIVABLE_NOT_FOUND"
    CONTACT_NOT_FOUND = "CONTACT_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    WRITE_CONFLICT = "WRITE_CONFLICT"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    EXCEEDS_REMAINING = "EXCEEDS_REMAINING"
    PAYMENT_EXCEEDS_REMAINING = "PAYMENT_EXCEEDS_REMAINING"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(timestamp: datetime) -> str:
    return timestamp.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = _utcnow()
        super().__init__(self.message)


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class MissingFieldException(ValidationException):
    """Required field missing or blank"""

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Field '{field}' is required.",
            field=field,
            code=ErrorCode.MISSING_FIELD,
        )


class InvalidDateRangeException(ValidationException):
    """Invalid date range"""

    def __init__(self, start_date: str, end_date: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid date range: {start_date} to {end_date}. Start date must not be after end date.",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": start_date, "end_date": end_date},
        )


class InvalidAmountException(ValidationException):
    """Invalid monetary amount"""

    def __init__(self, amount: Any, field: str = "amount", message: Optional[str] = None):
        super().__init__(
            message=message or f"Invalid amount: {amount}. Amount must be a positive number.",
            field=field,
            code=ErrorCode.INVALID_AMOUNT,
            details={"provided_amount": str(amount)},
        )


class InvalidBalanceException(ValidationException):
    """Remaining amount outside the range [0, original]"""

    def __init__(self, original: Decimal, remaining: Decimal):
        super().__init__(
            message=f"Remaining amount {remaining} must be between 0 and the original amount {original}.",
            code=ErrorCode.INVALID_BALANCE,
            details={"original_amount": str(original), "remaining_amount": str(remaining)},
        )


# ============================================================================
# Authorization Exceptions
# ============================================================================

class AuthenticationException(AppException):
    """Caller identity missing or malformed"""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            code=ErrorCode.UNAUTHORIZED,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class AuthorizationException(AppException):
    """Authorization denied exception"""

    def __init__(
        self,
        message: str = "Permission denied",
        code: ErrorCode = ErrorCode.FORBIDDEN,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class BranchAccessDeniedException(AuthorizationException):
    """Target entity belongs to a branch outside the caller's scope"""

    def __init__(self, branch_id: Optional[Union[str, UUID]] = None):
        super().__init__(
            message="You do not have access to this branch",
            code=ErrorCode.BRANCH_ACCESS_DENIED,
            details={"branch_id": str(branch_id) if branch_id else None},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, UUID]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class DuplicateEntryException(ConflictException):
    """Duplicate entry exception"""

    def __init__(
        self,
        resource_type: str,
        field: str,
        value: str,
    ):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            resource_type=resource_type,
            code=ErrorCode.DUPLICATE_ENTRY,
            details={"field": field, "value": value},
        )


class WriteConflictException(ConflictException):
    """Concurrent write on the same balance row; safe for the caller to retry"""

    def __init__(self, resource_type: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"The {resource_type} was modified by another request. Please retry.",
            resource_type=resource_type,
            code=ErrorCode.WRITE_CONFLICT,
            details={"retryable": True},
        )
        self.original_error = original_error


# SQLSTATEs for serialization failure, deadlock and lock timeout
WRITE_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def is_write_conflict(exc: BaseException) -> bool:
    """
    True for database errors that mean a concurrent writer got there first.

    asyncpg reports serialization failures and deadlocks as a plain
    DBAPIError, so the SQLSTATE on the driver error decides; psycopg
    exposes it as ``pgcode``.
    """
    if isinstance(exc, OperationalError):
        return True
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    for err in (exc.orig, getattr(exc.orig, "__cause__", None)):
        if err is None:
            continue
        code = getattr(err, "sqlstate", None) or getattr(err, "pgcode", None)
        if code in WRITE_CONFLICT_SQLSTATES:
            return True
    return False


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class ExceedsRemainingException(BusinessRuleException):
    """Deduction larger than the balance's remaining amount"""

    def __init__(
        self,
        attempted: Decimal,
        remaining: Decimal,
        code: ErrorCode = ErrorCode.EXCEEDS_REMAINING,
        label: str = "Deduction amount",
    ):
        self.attempted = attempted
        self.remaining = remaining
        super().__init__(
            message=f"{label} ({attempted}) exceeds the remaining amount ({remaining})",
            rule="AMOUNT_WITHIN_REMAINING",
            code=code,
            details={"attempted_amount": str(attempted), "remaining_amount": str(remaining)},
        )


class PaymentExceedsRemainingException(ExceedsRemainingException):
    """Payable payment or receivable collection larger than the remaining amount"""

    def __init__(self, amount_paid: Decimal, remaining: Decimal):
        super().__init__(
            attempted=amount_paid,
            remaining=remaining,
            code=ErrorCode.PAYMENT_EXCEEDS_REMAINING,
            label="Payment amount",
        )


class BudgetExceededException(BusinessRuleException):
    """Advance deductions exceed the gross salary being paid"""

    def __init__(self, total_deduction: Decimal, salary_amount: Decimal):
        self.total_deduction = total_deduction
        self.salary_amount = salary_amount
        super().__init__(
            message=f"Total advance deductions ({total_deduction}) exceed the salary amount ({salary_amount})",
            rule="DEDUCTIONS_WITHIN_SALARY",
            code=ErrorCode.BUDGET_EXCEEDED,
            details={
                "total_deduction": str(total_deduction),
                "salary_amount": str(salary_amount),
                "overage": str(total_deduction - salary_amount),
            },
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": _iso(_utcnow()),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


_HTTP_ERROR_CODES = {
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.RESOURCE_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown routes, wrong methods) in the standard envelope"""
    if exc.status_code >= 500:
        error_code = ErrorCode.INTERNAL_ERROR
    else:
        error_code = _HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.INVALID_INPUT)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Database errors that escaped a service.

    Lock and serialization failures are normally turned into
    WriteConflictException by the unit of work; one that slips through is
    still reported as a retryable conflict.
    """
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    details = None

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
        elif "foreign key" in error_str:
            error_message = "Referenced record does not exist"
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif is_write_conflict(exc):
        error_message = "The record was modified by another request. Please retry."
        error_code = ErrorCode.WRITE_CONFLICT
        status_code = status.HTTP_409_CONFLICT
        details = {"retryable": True}
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
        details=details,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    # Don't expose internal error details
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


# ============================================================================
# Error Tracking Middleware
# ============================================================================

class ErrorTrackingMiddleware:
    """Middleware for tracking and logging all errors"""

    def __init__(self, app: FastAPI):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            # Log error with request context
            logger.error(
                f"Request failed: {scope.get('path', 'unknown')}",
                extra={
                    "path": scope.get("path"),
                    "method": scope.get("method"),
                    "exception_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise


__all__ = [
    # Base
    "AppException",
    "ErrorCode",

    # Validation
    "ValidationException",
    "MissingFieldException",
    "InvalidDateRangeException",
    "InvalidAmountException",
    "InvalidBalanceException",

    # Auth
    "AuthenticationException",
    "AuthorizationException",
    "BranchAccessDeniedException",

    # Resource
    "NotFoundException",
    "ConflictException",
    "DuplicateEntryException",
    "WriteConflictException",
    "is_write_conflict",

    # Business Logic
    "BusinessRuleException",
    "ExceedsRemainingException",
    "PaymentExceedsRemainingException",
    "BudgetExceededException",

    # Handlers
    "setup_exception_handlers",
    "create_error_response",
    "ErrorTrackingMiddleware",
]
