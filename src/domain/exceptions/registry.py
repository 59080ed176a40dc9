"""
Exception message template registry.

Purpose
-------
Single source of truth for exception-to-message mappings. Presentation
collaborators call ``format_exception`` to turn a typed failure into a
title/description pair, so resource shortfalls and illegal transitions read
the same wherever they surface.

Design Notes
------------
Each template contains:
- title: Short, clear error title
- template: Message template with {placeholder} interpolation over `details`
- help_text: Optional guidance for the player
- severity: ErrorSeverity level for visual styling
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import ConfigurationError, DatabaseError
from src.modules.shared.exceptions import (
    ConcurrencyViolationError,
    CultivationDomainException,
    ErrorSeverity,
    InsufficientResourcesError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailureError,
    ValidationError,
)


class ExceptionTemplate:
    """Template for formatting exception messages."""

    def __init__(
        self,
        title: str,
        template: str,
        help_text: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ):
        self.title = title
        self.template = template
        self.help_text = help_text
        self.severity = severity

    def format(self, exception: Exception) -> Dict[str, Any]:
        """
        Format exception using template.

        Returns:
            Dict with 'title', 'description', 'help_text', 'severity'
        """
        details: Dict[str, Any] = {}
        if isinstance(exception, CultivationDomainException):
            details = exception.details.copy()

        try:
            description = self.template.format(**details)
        except (KeyError, ValueError):
            description = str(exception)

        return {
            "title": self.title,
            "description": description,
            "help_text": self.help_text,
            "severity": self.severity,
        }


# ============================================================================
# EXCEPTION TEMPLATE REGISTRY
# ============================================================================

EXCEPTION_TEMPLATES: Dict[type, ExceptionTemplate] = {
    InsufficientResourcesError: ExceptionTemplate(
        title="Insufficient Resources",
        template="You need {required:,} {resource}, but you only have {current:,}.",
        help_text="Keep meditating and try again.",
        severity=ErrorSeverity.INFO,
    ),
    InvalidTransitionError: ExceptionTemplate(
        title="Not Possible",
        template="{reason}",
        severity=ErrorSeverity.INFO,
    ),
    NotFoundError: ExceptionTemplate(
        title="Not Found",
        template="{resource_type} not found.",
        severity=ErrorSeverity.INFO,
    ),
    ValidationError: ExceptionTemplate(
        title="Invalid Input",
        template="{field}: {validation_message}",
        severity=ErrorSeverity.INFO,
    ),
    ConcurrencyViolationError: ExceptionTemplate(
        title="Busy",
        template="Another action is still in progress. Retry in {retry_after:.1f}s.",
        severity=ErrorSeverity.WARNING,
    ),
    PersistenceFailureError: ExceptionTemplate(
        title="Save Failed",
        template="Your progress could not be saved. Nothing was spent.",
        help_text="Please try again in a moment.",
        severity=ErrorSeverity.WARNING,
    ),
    ConfigurationError: ExceptionTemplate(
        title="Configuration Error",
        template="A system configuration error occurred.",
        help_text="Error code: CONFIG_ERROR",
        severity=ErrorSeverity.CRITICAL,
    ),
    DatabaseError: ExceptionTemplate(
        title="Database Error",
        template="A database error occurred. Please try again in a moment.",
        severity=ErrorSeverity.ERROR,
    ),
}


def get_exception_template(exception: Exception) -> Optional[ExceptionTemplate]:
    """Get the template registered for an exception's exact type."""
    return EXCEPTION_TEMPLATES.get(type(exception))


def format_exception(exception: Exception) -> Dict[str, Any]:
    """
    Format any exception into a player-facing message.

    Unregistered exceptions fall back to a generic error.
    """
    template = get_exception_template(exception)
    if template is None:
        return {
            "title": "Error",
            "description": "Something went wrong. Please try again.",
            "help_text": None,
            "severity": ErrorSeverity.ERROR,
        }
    return template.format(exception)
