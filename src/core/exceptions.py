"""
Infrastructure exceptions for the cultivation engine.

Configuration and storage failures that are not player-caused. They carry
the same metadata as the domain hierarchy in ``src.modules.shared.exceptions``
(``details``, ``severity``, ``is_retryable``, ``error_code``), so the
severity helpers and the message registry handle both without special cases.
"""

from __future__ import annotations

from typing import Any

from src.modules.shared.exceptions import CultivationDomainException, ErrorSeverity


class CultivationInfrastructureException(CultivationDomainException):
    """Base for failures below the domain layer."""


class ConfigurationError(CultivationInfrastructureException):
    """
    A balance value is missing, non-numeric or outside its allowed range.

    Raised at component construction, so a bad YAML edit stops startup
    instead of skewing live progression.
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str, value: Any = None) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message, "value": value},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(CultivationInfrastructureException):
    """A read outside any player's write path failed (e.g. loading the catalog)."""

    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: BaseException) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )
