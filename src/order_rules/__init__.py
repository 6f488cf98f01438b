"""
Order Validation Rules Service Module.

This package contains the shared order validation rules and their hosts,
following the three-layer architecture:

- handlers: web API and plugin webhook entry points
- logic: CreateOrderValidator, its rules, and the order service
- dal: rules-data abstraction and its Dataverse implementations
- models: commands, lookup records, validation results and API schemas
"""

__version__ = "1.0.0"
__description__ = "Shared order validation rules for Dataverse and the orders API"

from order_rules.models.command import CreateOrderCommand, OrderLineCommand, OrderValidationErrors
from order_rules.models.validation import ValidationFailure, ValidationResult

__all__ = [
    "CreateOrderCommand",
    "OrderLineCommand",
    "OrderValidationErrors",
    "ValidationFailure",
    "ValidationResult",
]
