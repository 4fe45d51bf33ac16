"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ConflictError - State conflicts (duplicates, concurrent modifications)
    └── ConfigurationError - Deployment is missing required settings

Usage:
    from core.exceptions import ConflictError

    raise ConflictError(
        "Commissions already claimed",
        error_code="COMMISSION_CONFLICT",
        details={"organisation_id": str(organisation_id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)

Note:
    Expected business failures are returned as ServiceResult (core.services).
    These exceptions are for failures the caller cannot plan around.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Organisation not found",
                "error_code": "ORGANISATION_NOT_FOUND",
                "details": {"organisation_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for invalid state transitions and concurrent modification (for
    example, commissions claimed by another payout between read and write).
    HTTP 409 Conflict is the appropriate status.
    """

    default_error_code: str = "CONFLICT"


class ConfigurationError(BaseApplicationError):
    """
    Raised when the deployment is missing a setting required for safe operation.

    These are operator errors. They are logged at CRITICAL and surfaced as
    HTTP 500 rather than degrading to a less safe code path.
    """

    default_error_code: str = "CONFIGURATION_ERROR"

