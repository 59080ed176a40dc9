"""
Unit tests for the domain exception hierarchy and the message registry.
"""

import pytest

from src.core.exceptions import ConfigurationError, DatabaseError
from src.domain.exceptions import format_exception, get_exception_template
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


@pytest.mark.unit
class TestDomainExceptions:
    def test_all_inherit_base(self):
        for exc in (
            InsufficientResourcesError("spirit_stones", 10, 5),
            InvalidTransitionError("upgrade", "max level"),
            PersistenceFailureError("save_snapshot", "u-1"),
            ConcurrencyViolationError("u-1", "tick", 10.0),
            NotFoundError("Tier", 9),
            ValidationError("user_id", "bad"),
        ):
            assert isinstance(exc, CultivationDomainException)

    def test_insufficient_resources_details(self):
        exc = InsufficientResourcesError("spirit_stones", 2500, 2000)

        data = exc.to_dict()

        assert data["error_code"] == "INSUFFICIENT_SPIRIT_STONES"
        assert data["details"]["deficit"] == 500
        assert data["severity"] == "info"
        assert data["is_retryable"] is False

    def test_persistence_failure_keeps_cause(self):
        cause = RuntimeError("disk full")

        exc = PersistenceFailureError("save_snapshot", "u-1", cause)

        assert exc.cause is cause
        assert "RuntimeError: disk full" in exc.details["cause"]
        assert is_transient_error(exc) is True

    def test_severity_helpers(self):
        assert get_error_severity(ConcurrencyViolationError("u-1", "tick", 1.0)) is ErrorSeverity.WARNING
        assert get_error_severity(KeyError("x")) is ErrorSeverity.ERROR
        assert should_alert(KeyError("x")) is True
        assert should_alert(NotFoundError("Method")) is False
        assert is_transient_error(ValueError()) is False


@pytest.mark.unit
class TestExceptionRegistry:
    def test_insufficient_resources_message(self):
        message = format_exception(InsufficientResourcesError("spirit_stones", 2500, 2000))

        assert message["title"] == "Insufficient Resources"
        assert message["description"] == "You need 2,500 spirit_stones, but you only have 2,000."

    def test_invalid_transition_uses_reason(self):
        message = format_exception(InvalidTransitionError("purchase", "You already know this method"))

        assert message["description"] == "You already know this method"

    def test_busy_message(self):
        message = format_exception(ConcurrencyViolationError("u-1", "purchase_method", 10.0))

        assert message["description"] == "Another action is still in progress. Retry in 10.0s."

    def test_infrastructure_errors_registered(self):
        assert get_exception_template(ConfigurationError("x", "missing")) is not None
        message = format_exception(DatabaseError("save", RuntimeError("gone")))
        assert message["title"] == "Database Error"

    def test_infrastructure_severity_honored(self):
        assert get_error_severity(ConfigurationError("cultivation.x", "missing")) is ErrorSeverity.CRITICAL
        assert is_transient_error(DatabaseError("load_catalog", RuntimeError("gone"))) is True

    def test_unknown_exception_falls_back(self):
        message = format_exception(KeyError("nope"))

        assert message["title"] == "Error"
        assert message["severity"] is ErrorSeverity.ERROR
