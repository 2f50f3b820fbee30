"""
Custom exceptions for APITrail.

Reporting errors never reach the host application; these exist so the
internal layers can signal failures to each other with structured details.
"""

from typing import Any, Dict, Optional


class APITrailException(Exception):
    """Base exception for APITrail."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class TransportError(APITrailException):
    """Raised when the collector cannot be reached within the timeout."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="transport_error",
            details=details,
        )
