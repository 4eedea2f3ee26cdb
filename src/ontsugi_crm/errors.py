"""Error taxonomy and the Result envelope returned by public services.

Internal layers (record store client, repositories) raise ``CRMError``
subclasses. Service methods catch them at their boundary and hand back a
``Result`` so callers branch on ``result.success`` instead of exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    REQUEST_FAILED = "REQUEST_FAILED"
    REMOTE_API_ERROR = "REMOTE_API_ERROR"
    EXPORT_FAILED = "EXPORT_FAILED"
    PREVIEW_FAILED = "PREVIEW_FAILED"
    PDF_GENERATION_FAILED = "PDF_GENERATION_FAILED"
    FILE_WRITE_FAILED = "FILE_WRITE_FAILED"


class CRMError(Exception):
    """Base exception for Ontsugi CRM errors."""

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}


class NotFoundError(CRMError):
    """Referenced record, group, invoice or quote is absent."""

    code = ErrorCode.NOT_FOUND


class InvalidInputError(CRMError):
    """Caller supplied an invalid value or requested an invalid transition."""

    code = ErrorCode.INVALID_INPUT


class LarkBaseError(CRMError):
    """Base exception for Lark Base API errors."""

    code = ErrorCode.REMOTE_API_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details=details)
        self.status_code = status_code


class RequestFailedError(LarkBaseError):
    """Transport failure talking to Lark Base."""

    code = ErrorCode.REQUEST_FAILED


class RemoteApiError(LarkBaseError):
    """Lark Base answered with a non-success code."""

    code = ErrorCode.REMOTE_API_ERROR


@dataclass(frozen=True)
class ErrorInfo:
    """Error carried by a failed Result."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls, exc: Exception, fallback: ErrorCode = ErrorCode.INVALID_INPUT
    ) -> "ErrorInfo":
        """Build error info from a CRMError, or wrap any other exception."""
        if isinstance(exc, CRMError):
            details = dict(exc.details)
            status_code = getattr(exc, "status_code", None)
            if status_code is not None:
                details.setdefault("status_code", status_code)
            return cls(code=exc.code.value, message=exc.message, details=details)
        return cls(code=fallback.value, message=str(exc) or type(exc).__name__)


@dataclass
class Result(Generic[T]):
    """Outcome of a public service operation."""

    success: bool
    data: T | None = None
    error: ErrorInfo | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "Result[T]":
        code_value = code.value if isinstance(code, ErrorCode) else code
        return cls(
            success=False,
            error=ErrorInfo(code=code_value, message=message, details=details or {}),
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, fallback: ErrorCode = ErrorCode.INVALID_INPUT
    ) -> "Result[T]":
        return cls(success=False, error=ErrorInfo.from_exception(exc, fallback))

    @classmethod
    def propagate(cls, other: "Result[Any]") -> "Result[T]":
        """Carry the error of a failed result into a result of another type."""
        return cls(success=False, error=other.error)
