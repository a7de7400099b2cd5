"""
RFC 7807 Problem Details exception handling.

Every error the billing core raises is a ``BillingException`` so routers can let
it propagate and the registered handlers render it as
``application/problem+json``. Aggregation and sharing code paths catch these and
turn them into state instead of raising.

See: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel, Field
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import traceback
import uuid
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://kirana.local/problems"


def _get_trace_id() -> str:
    """Get trace ID from correlation context or generate a new one."""
    from kirana.middleware.correlation import get_request_id

    request_id = get_request_id()
    if request_id and request_id != "unknown":
        return request_id
    return str(uuid.uuid4())[:12]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class ErrorCode(str, Enum):
    """Standardized error codes for the billing API."""

    # Validation
    VALIDATION_ERROR = "VAL_001"
    INVALID_INVOICE = "VAL_002"

    # Resource
    NOT_FOUND = "RES_001"
    CONFLICT = "RES_003"

    # Business Logic
    BUSINESS_RULE_VIOLATION = "BIZ_001"
    ALREADY_PAID = "BIZ_002"
    DOCUMENT_NOT_READY = "BIZ_003"

    # External Services
    EXTERNAL_SERVICE_ERROR = "EXT_001"
    SHARE_FAILED = "EXT_002"

    # Server
    INTERNAL_ERROR = "SRV_001"
    LOAD_FAILURE = "SRV_002"


class ProblemDetail(BaseModel):
    """
    RFC 7807 Problem Details response schema.

    Attributes:
        type: URI reference identifying the problem type
        title: Short, human-readable summary
        status: HTTP status code
        detail: Human-readable explanation specific to this occurrence
        instance: URI reference identifying this specific occurrence
        code: Machine-readable error code for client handling
        timestamp: ISO 8601 timestamp of when the error occurred
        trace_id: Unique identifier for tracing in logs
        errors: List of field-level validation errors (for 422)
    """

    type: str = Field(
        default="about:blank",
        description="URI reference identifying the problem type"
    )
    title: str = Field(
        description="Short, human-readable summary of the problem"
    )
    status: int = Field(
        description="HTTP status code"
    )
    detail: str = Field(
        description="Human-readable explanation specific to this occurrence"
    )
    instance: Optional[str] = Field(
        default=None,
        description="URI reference for this specific occurrence"
    )
    code: str = Field(
        description="Machine-readable error code"
    )
    timestamp: str = Field(
        description="ISO 8601 timestamp"
    )
    trace_id: str = Field(
        description="Unique trace ID for debugging"
    )
    errors: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Field-level validation errors"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "https://kirana.local/problems/biz-002",
                "title": "Conflict",
                "status": 409,
                "detail": "Invoice INV000042 is already paid",
                "instance": "/api/v2/invoices/42/mark-paid",
                "code": "BIZ_002",
                "timestamp": "2024-01-02T10:30:00Z",
                "trace_id": "abc123def456"
            }
        }
    }


class BillingException(HTTPException):
    """
    Base exception for the billing core with RFC 7807 support.

    Usage:
        raise BillingException(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail="Invoice not found",
        )
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        title: Optional[str] = None,
        instance: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.errors = errors
        self.trace_id = _get_trace_id()
        self.timestamp = _utc_timestamp()

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return str(self.detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title based on status code."""
        titles = {
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            422: "Validation Error",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")

    def to_problem_detail(self) -> ProblemDetail:
        """Convert to RFC 7807 ProblemDetail."""
        return ProblemDetail(
            type=f"{PROBLEM_TYPE_BASE}/{self.code.value.lower().replace('_', '-')}",
            title=self.title,
            status=self.status_code,
            detail=self.detail,
            instance=self.instance,
            code=self.code.value,
            timestamp=self.timestamp,
            trace_id=self.trace_id,
            errors=self.errors,
        )


# Convenience exception classes

class NotFoundError(BillingException):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        resource_id: str,
        instance: Optional[str] = None
    ):
        super().__init__(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail=f"{resource} with ID {resource_id} was not found",
            instance=instance,
        )


class ValidationError(BillingException):
    """Validation error (422)."""

    def __init__(
        self,
        detail: str,
        errors: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(
            status_code=422,
            code=ErrorCode.VALIDATION_ERROR,
            detail=detail,
            errors=errors,
        )


class ConflictError(BillingException):
    """Resource conflict (409)."""

    def __init__(self, detail: str, code: ErrorCode = ErrorCode.CONFLICT):
        super().__init__(
            status_code=409,
            code=code,
            detail=detail,
        )


class BusinessRuleError(BillingException):
    """Business rule violation (400)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=400,
            code=ErrorCode.BUSINESS_RULE_VIOLATION,
            detail=detail,
        )


# Billing domain errors

class InvalidInvoiceError(BillingException):
    """An invoice could not be constructed from its inputs (422)."""

    def __init__(self, detail: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            status_code=422,
            code=ErrorCode.INVALID_INVOICE,
            detail=detail,
            errors=errors,
        )


class AlreadyPaidError(ConflictError):
    """Payment collection attempted on a settled invoice (409)."""

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(
            detail=f"Invoice {invoice_number} is already paid",
            code=ErrorCode.ALREADY_PAID,
        )


class DocumentNotReadyError(ConflictError):
    """The invoice PDF has not been generated yet (409)."""

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(
            detail=f"PDF not available for invoice {invoice_number}",
            code=ErrorCode.DOCUMENT_NOT_READY,
        )


class ShareFailedError(BillingException):
    """A sharing channel reported a failure (502)."""

    def __init__(self, channel: str, detail: str):
        self.channel = channel
        super().__init__(
            status_code=502,
            code=ErrorCode.SHARE_FAILED,
            detail=f"Failed to share via {channel}: {detail}",
        )


class LoadFailure(BillingException):
    """Dashboard aggregation failed (500)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=500,
            code=ErrorCode.LOAD_FAILURE,
            detail=detail,
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> "LoadFailure":
        if isinstance(exc, LoadFailure):
            return exc
        if isinstance(exc, HTTPException):
            return cls(str(exc.detail))
        return cls(str(exc) or "Error loading data")


# Exception handlers for FastAPI

def create_problem_response(
    status_code: int,
    code: ErrorCode,
    detail: str,
    request: Request,
    errors: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
) -> JSONResponse:
    """Create a RFC 7807 compliant JSON response."""
    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/{code.value.lower().replace('_', '-')}",
        title=BillingException._default_title(status_code),
        status=status_code,
        detail=detail,
        instance=str(request.url.path),
        code=code.value,
        timestamp=_utc_timestamp(),
        trace_id=trace_id or _get_trace_id(),
        errors=errors,
    )

    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


async def billing_exception_handler(request: Request, exc: BillingException) -> JSONResponse:
    """Handle BillingException with RFC 7807 response."""
    logger.warning(
        f"BillingException: {exc.code.value} - {exc.detail}",
        extra={
            "trace_id": exc.trace_id,
            "status_code": exc.status_code,
            "path": request.url.path,
        }
    )

    problem = exc.to_problem_detail()
    if problem.instance is None:
        problem.instance = str(request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=exc.headers,
    )


def create_exception_handlers():
    """
    Create exception handlers for the application.

    Usage in main.py:
        handlers = create_exception_handlers()
        app.add_exception_handler(BillingException, handlers["billing"])
        app.add_exception_handler(RequestValidationError, handlers["validation"])
        app.add_exception_handler(Exception, handlers["generic"])
    """

    async def handle_http_exception(
        request: Request,
        exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTPException with RFC 7807 response."""
        code_map = {
            400: ErrorCode.VALIDATION_ERROR,
            404: ErrorCode.NOT_FOUND,
            409: ErrorCode.CONFLICT,
            422: ErrorCode.VALIDATION_ERROR,
            500: ErrorCode.INTERNAL_ERROR,
            502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        }

        code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)

        return create_problem_response(
            status_code=exc.status_code,
            code=code,
            detail=str(exc.detail),
            request=request,
        )

    async def handle_validation_exception(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            })

        return create_problem_response(
            status_code=422,
            code=ErrorCode.VALIDATION_ERROR,
            detail="Request validation failed",
            request=request,
            errors=errors,
        )

    async def handle_generic_exception(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions with RFC 7807 response."""
        trace_id = str(uuid.uuid4())[:12]

        logger.error(
            f"Unhandled exception: {exc}",
            extra={"trace_id": trace_id, "path": request.url.path},
        )
        logger.error(traceback.format_exc())

        # Don't expose internal details in production
        from kirana.config import settings
        detail = str(exc) if settings.DEBUG else "An unexpected error occurred"

        return create_problem_response(
            status_code=500,
            code=ErrorCode.INTERNAL_ERROR,
            detail=detail,
            request=request,
            trace_id=trace_id,
        )

    return {
        "billing": billing_exception_handler,
        "http": handle_http_exception,
        "validation": handle_validation_exception,
        "generic": handle_generic_exception,
    }
