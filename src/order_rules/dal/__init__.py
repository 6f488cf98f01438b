"""
Data Access Layer (DAL) for the order validation rules.

This module defines the rules-data abstraction through which the validator
queries reference data, together with factory functions that build the
Dataverse-backed implementation for each host.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from order_rules.models.rules_data import CustomerInfo, ProductInfo

if TYPE_CHECKING:
    from order_rules.dal.dataverse_client import DataverseClient
    from order_rules.handlers.models.env_vars import OrderRulesEnvVars


@runtime_checkable
class OrderRulesData(Protocol):
    """Protocol defining the lookups the order rules depend on."""

    async def customer_exists(self, customer_id: str) -> bool:
        """Check whether a customer exists."""
        ...

    async def product_exists(self, product_id: str) -> bool:
        """Check whether a product exists."""
        ...

    async def try_get_product_price(self, product_id: str) -> Optional[Decimal]:
        """Catalog price of a product, or None when it does not exist."""
        ...

    async def is_order_number_unique(self, order_number: str) -> bool:
        """Check that no existing order uses this number."""
        ...

    async def try_get_customer_info(self, customer_id: str) -> Optional[CustomerInfo]:
        """Customer details, or None when the customer does not exist."""
        ...

    async def try_get_product_info(self, product_id: str) -> Optional[ProductInfo]:
        """Product details, or None when the product does not exist."""
        ...


class BaseOrderRulesData(ABC):
    """Abstract base class for rules-data implementations."""

    @abstractmethod
    async def customer_exists(self, customer_id: str) -> bool:
        pass

    @abstractmethod
    async def product_exists(self, product_id: str) -> bool:
        pass

    @abstractmethod
    async def try_get_product_price(self, product_id: str) -> Optional[Decimal]:
        pass

    @abstractmethod
    async def is_order_number_unique(self, order_number: str) -> bool:
        pass

    @abstractmethod
    async def try_get_customer_info(self, customer_id: str) -> Optional[CustomerInfo]:
        pass

    @abstractmethod
    async def try_get_product_info(self, product_id: str) -> Optional[ProductInfo]:
        pass


def get_plugin_rules_data(
    client: 'DataverseClient',
    env: 'OrderRulesEnvVars',
    cache_ttl_seconds: int = 60,
) -> OrderRulesData:
    """
    Factory function for the plugin host.

    Args:
        client: Dataverse client bound to the current invocation
        env: Environment configuration with state codes and table names
        cache_ttl_seconds: How long an answer is reused

    Returns:
        Rules data that swallows platform failures, wrapped in a per-request cache
    """
    # Import here to avoid circular imports
    from order_rules.dal.cached_rules_data import CachedOrderRulesData
    from order_rules.dal.plugin_rules_data import DataversePluginRulesData

    return CachedOrderRulesData(DataversePluginRulesData(
        client,
        customer_active_statecode=env.CUSTOMER_ACTIVE_STATECODE,
        product_active_statecode=env.PRODUCT_ACTIVE_STATECODE,
        orders_entity_set=env.ORDERS_ENTITY_SET,
    ), ttl_seconds=cache_ttl_seconds)


def get_api_rules_data(
    client: 'DataverseClient',
    env: 'OrderRulesEnvVars',
    cache_ttl_seconds: int = 60,
) -> OrderRulesData:
    """
    Factory function for the web API host.

    Args:
        client: Dataverse client bound to the current invocation
        env: Environment configuration with state codes and table names
        cache_ttl_seconds: How long an answer is reused

    Returns:
        Rules data that raises on platform failures, wrapped in a per-request cache
    """
    from order_rules.dal.api_rules_data import DataverseApiRulesData
    from order_rules.dal.cached_rules_data import CachedOrderRulesData

    return CachedOrderRulesData(DataverseApiRulesData(
        client,
        customer_active_statecode=env.CUSTOMER_ACTIVE_STATECODE,
        product_active_statecode=env.PRODUCT_ACTIVE_STATECODE,
        orders_entity_set=env.ORDERS_ENTITY_SET,
    ), ttl_seconds=cache_ttl_seconds)


__all__ = [
    'OrderRulesData',
    'BaseOrderRulesData',
    'get_plugin_rules_data',
    'get_api_rules_data',
]
