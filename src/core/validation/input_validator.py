"""
Input Validation Layer

Purpose
-------
Centralized validation for caller-supplied identifiers before they reach the
cultivation services. Enforces type, bounds and format so malformed input is
rejected with a `ValidationError` instead of leaking into queries or locks.

Responsibilities
----------------
- Validate and convert integer ids (method ids, owned method ids)
- Validate player identifiers handed over by the identity collaborator
- Validate bounded strings

Non-Responsibilities
--------------------
- Business rule enforcement (handled by services)
- Authorization (identity is an external collaborator)

Observability
-------------
Every validation failure is logged at debug level with field_name, raw_value
(repr) and reason.
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional

from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

USER_ID_MAX_LENGTH = 64
_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-:.]+$")


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation.

    All methods return the validated (and converted) value or raise
    ValidationError.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds.

        Booleans are rejected even though they are ints in Python.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number, got a boolean")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if isinstance(value, float) and value != int_value:
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    @staticmethod
    def validate_positive_integer(value: Any, field_name: str) -> int:
        """Validate that value is a strictly positive integer (>= 1)."""
        return InputValidator.validate_integer(value, field_name, min_value=1)

    # =========================================================================
    # IDENTIFIER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_user_id(value: Any) -> str:
        """
        Validate a player identifier (opaque string such as a UUID).

        Examples
        --------
        >>> InputValidator.validate_user_id("5b0c6a3e-1f7a-4f7e-9a52-0e2d1c1f0a11")
        '5b0c6a3e-1f7a-4f7e-9a52-0e2d1c1f0a11'
        """
        if not isinstance(value, str):
            _raise_validation_error("user_id", value, "Must be a string identifier")
        return InputValidator.validate_string(
            value,
            "user_id",
            min_length=1,
            max_length=USER_ID_MAX_LENGTH,
            pattern=_USER_ID_PATTERN,
        )

    @staticmethod
    def validate_method_id(value: Any) -> int:
        return InputValidator.validate_positive_integer(value, "method_id")

    @staticmethod
    def validate_owned_method_id(value: Any) -> int:
        return InputValidator.validate_positive_integer(value, "owned_method_id")

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        pattern: Optional[re.Pattern[str]] = None,
    ) -> str:
        """Validate a stripped string against length and an optional pattern."""
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        str_value = str(value).strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Must be at least {min_length} characters",
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Cannot exceed {max_length} characters",
            )

        if pattern is not None and not pattern.match(str_value):
            _raise_validation_error(field_name, str_value, "Contains invalid characters")

        return str_value
