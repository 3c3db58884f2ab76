# -*- coding: utf-8 -*-
"""
Exception hierarchy for the nutrition ledger.

Each error carries a message, an error code for API responses, the HTTP
status it maps to and optional details (e.g. field-level validation errors).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Error codes for consistent API error responses."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"

    # Persistence
    PARTIAL_COMMIT = "PARTIAL_COMMIT"
    MIRROR_UNAVAILABLE = "MIRROR_UNAVAILABLE"

    # Meal analysis job
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    ANALYSIS_TIMEOUT = "ANALYSIS_TIMEOUT"
    ANALYSIS_ABANDONED = "ANALYSIS_ABANDONED"

    # Product lookup
    PRODUCT_LOOKUP_FAILED = "PRODUCT_LOOKUP_FAILED"


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        status_code: HTTP status code for API responses
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code.value,
            "details": self.details,
        }


class ValidationFailed(LedgerError):
    """Rejected at the edit boundary; ``field_errors`` maps field -> message."""

    def __init__(self, field_errors: Dict[str, str], message: str = "Validation failed") -> None:
        self.field_errors = dict(field_errors)
        super().__init__(
            message,
            code=ErrorCode.VALIDATION_ERROR,
            status_code=422,
            details={"fields": self.field_errors},
        )


class Conflict(LedgerError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code=ErrorCode.CONFLICT, status_code=409, details=details)


class NotFound(LedgerError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code=ErrorCode.NOT_FOUND, status_code=404)


class PartialCommitError(LedgerError):
    """A multi-step write failed after some steps committed; compensation already ran."""

    def __init__(self, message: str, *, failed_step: str, compensated: List[str]) -> None:
        super().__init__(
            message,
            code=ErrorCode.PARTIAL_COMMIT,
            status_code=500,
            details={"failed_step": failed_step, "compensated": compensated},
        )
        self.failed_step = failed_step
        self.compensated = compensated


class MirrorUnavailable(LedgerError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code=ErrorCode.MIRROR_UNAVAILABLE, status_code=503)


class AnalysisFailed(LedgerError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code=ErrorCode.ANALYSIS_FAILED, status_code=502)


class AnalysisTimedOut(LedgerError):
    def __init__(self, attempts: int) -> None:
        super().__init__(
            "Meal analysis took too long",
            code=ErrorCode.ANALYSIS_TIMEOUT,
            status_code=504,
            details={"attempts": attempts},
        )


class AnalysisAbandoned(LedgerError):
    def __init__(self) -> None:
        super().__init__(
            "Meal analysis was abandoned",
            code=ErrorCode.ANALYSIS_ABANDONED,
            status_code=409,
        )


class ProductLookupFailed(LedgerError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code=ErrorCode.PRODUCT_LOOKUP_FAILED, status_code=502)


class Unauthorized(LedgerError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message, code=ErrorCode.UNAUTHORIZED, status_code=401)
