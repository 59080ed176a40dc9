"""
Domain exceptions package.

Exports
-------
- All domain exception classes (defined in src/modules/shared/exceptions.py)
- EXCEPTION_TEMPLATES: Registry mapping exception types to player-facing templates
- format_exception: Turn a typed failure into a title/description message
"""

from src.modules.shared.exceptions import (
    ConcurrencyViolationError,
    CultivationDomainException,
    ErrorSeverity,
    InsufficientResourcesError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailureError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

from .registry import EXCEPTION_TEMPLATES, format_exception, get_exception_template

__all__ = [
    # Exception classes
    "CultivationDomainException",
    "InsufficientResourcesError",
    "InvalidTransitionError",
    "PersistenceFailureError",
    "ConcurrencyViolationError",
    "NotFoundError",
    "ValidationError",
    "ErrorSeverity",
    # Utilities
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Registry
    "EXCEPTION_TEMPLATES",
    "format_exception",
    "get_exception_template",
]
