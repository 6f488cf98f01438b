"""
Business Logic Layer Module.

This module contains the order validation rules, the validator that runs
them, the Dataverse entity mapper used by the plugin host and the order
service used by the web API host.
"""

from order_rules.logic.validator import CreateOrderValidator

__all__ = [
    "CreateOrderValidator",
]
