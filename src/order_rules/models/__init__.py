"""
Order Rules Models Package

This package contains the Pydantic models used throughout the service: the
shared order command, lookup records returned by the rules data, validation
results, rule thresholds and the web API request/response schemas.
"""

from .command import CreateOrderCommand, OrderLineCommand, OrderValidationErrors
from .rules_data import CustomerInfo, ProductInfo
from .settings import OrderRulesSettings
from .validation import ORDER_LEVEL_FIELD, ValidationFailure, ValidationResult

__all__ = [
    # Commands
    "CreateOrderCommand",
    "OrderLineCommand",
    "OrderValidationErrors",

    # Lookup records
    "CustomerInfo",
    "ProductInfo",

    # Validation
    "ORDER_LEVEL_FIELD",
    "ValidationFailure",
    "ValidationResult",
    "OrderRulesSettings",
]
