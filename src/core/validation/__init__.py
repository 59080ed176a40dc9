"""
Validation Package

Exposes `InputValidator`, the canonical checker for caller-supplied
identifiers. Business rules live in the services, not here.
"""

from src.core.validation.input_validator import InputValidator

__all__ = ["InputValidator"]
