"""
Domain exceptions for the cultivation engine.

Purpose
-------
Define the structured, domain-specific exception hierarchy for progression
logic. Services raise these for rule violations, resource shortfalls, storage
trouble and serialization timeouts. Callers translate them into player-facing
messages (see ``src.domain.exceptions.registry``).

Compliance
----------
- Domain exceptions only (progression rules, resources, transitions)
- Clear base class (`CultivationDomainException`) with serializable metadata
- Severity levels for logging and user communication decisions
- Retry hints and error codes for programmatic handling

Design Notes
------------
- All domain exceptions inherit from `CultivationDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal operation (e.g., not enough stones)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class CultivationDomainException(Exception):
    """
    Base exception for all cultivation domain errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise CultivationDomainException(
        ...     "Breakthrough failed",
        ...     {"reason": "ritual interrupted"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class InsufficientResourcesError(CultivationDomainException):
    """
    Raised when a player lacks the spirit power or spirit stones for an action.

    Args:
        resource: Name of the resource type ("spirit_power", "spirit_stones")
        required: Amount required for the action
        current: Amount the player currently has
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource: str, required: int, current: int) -> None:
        self.resource = resource
        self.required = required
        self.current = current
        message = f"Insufficient {resource}: need {required:,}, have {current:,}"
        super().__init__(
            message,
            details={
                "resource": resource,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code=f"INSUFFICIENT_{resource.upper()}",
        )


class InvalidTransitionError(CultivationDomainException):
    """
    Raised when an operation is not legal from the current state.

    Covers upgrading past max level, attempting a breakthrough at the final
    tier, learning an already-owned method and operating on a method the
    player does not own.

    Example:
        >>> raise InvalidTransitionError(
        ...     "upgrade_method",
        ...     "Method is already at max level"
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        message = f"Invalid transition '{action}': {reason}"
        super().__init__(
            message,
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


class PersistenceFailureError(CultivationDomainException):
    """
    Raised when a storage write fails.

    Flush paths only log these. Method operations raise them because their
    debit and mutation must land together or not at all.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, user_id: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.user_id = user_id
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown"
        super().__init__(
            f"Persistence failed during {operation} for user {user_id}",
            details={"operation": operation, "user_id": user_id, "cause": reason},
            error_code="PERSISTENCE_FAILURE",
        )


class ConcurrencyViolationError(CultivationDomainException):
    """
    Raised when an operation cannot be admitted to a player's serialization
    boundary within the admission timeout.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, user_id: str, operation: str, timeout_seconds: float) -> None:
        self.user_id = user_id
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Operation '{operation}' for user {user_id} not admitted "
            f"within {timeout_seconds:.1f}s",
            details={
                "user_id": user_id,
                "operation": operation,
                "retry_after": timeout_seconds,
            },
            error_code="CONCURRENCY_VIOLATION",
        )


class NotFoundError(CultivationDomainException):
    """
    Raised when a tier, method or progression record cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Tier", "Method")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(CultivationDomainException):
    """
    Raised when caller input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """Check if an exception represents a transient error that can be retried."""
    if isinstance(exc, CultivationDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Get the severity level of an exception for logging."""
    if isinstance(exc, CultivationDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """Return True if the exception's severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
