"""
Shared Module

Purpose
-------
Domain-level foundations for the feature modules:
- Domain exceptions and error handling
- Base service and repository patterns
- Pure cultivation formulas
- Domain validation utilities

Usage
-----
    from src.modules.shared import (
        BaseService,
        BaseRepository,
        InsufficientResourcesError,
        calculate_accrual_rate,
    )
"""

from __future__ import annotations

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService

# Domain exceptions
from .exceptions import (
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

# Formulas
from .formulas import (
    calculate_accrual_rate,
    calculate_failure_power,
    calculate_minor_requirement,
    calculate_progress_percent,
    calculate_purchase_cost,
    calculate_total_success_rate,
    calculate_upgrade_cost,
)

# Validators
from .validators import (
    validate_below_max_level,
    validate_method_ownership,
    validate_not_owned,
    validate_resource_cost,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "CultivationDomainException",
    "ErrorSeverity",
    "InsufficientResourcesError",
    "InvalidTransitionError",
    "PersistenceFailureError",
    "ConcurrencyViolationError",
    "NotFoundError",
    "ValidationError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Formulas
    "calculate_accrual_rate",
    "calculate_purchase_cost",
    "calculate_upgrade_cost",
    "calculate_minor_requirement",
    "calculate_total_success_rate",
    "calculate_failure_power",
    "calculate_progress_percent",
    # Validators
    "validate_resource_cost",
    "validate_below_max_level",
    "validate_method_ownership",
    "validate_not_owned",
]
