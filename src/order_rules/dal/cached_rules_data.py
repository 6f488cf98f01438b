"""
Per-request caching for rules-data lookups.

An order with many lines for the same product asks the same questions over
and over. CachedOrderRulesData wraps any OrderRulesData and remembers each
answer for a short time. In-flight lookups are shared, so concurrent rules
asking the same question trigger a single platform call.
"""

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from cachetools import TTLCache

from order_rules.dal import BaseOrderRulesData, OrderRulesData
from order_rules.handlers.utils.observability import logger
from order_rules.models.rules_data import CustomerInfo, ProductInfo

DEFAULT_TTL_SECONDS = 60
DEFAULT_MAX_SIZE = 1024


class CachedOrderRulesData(BaseOrderRulesData):
    """Caching decorator over another rules-data implementation."""

    def __init__(self, inner: OrderRulesData, ttl_seconds: int = DEFAULT_TTL_SECONDS, max_size: int = DEFAULT_MAX_SIZE):
        if inner is None:
            raise ValueError('inner rules data is required')
        self._inner = inner
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl_seconds)
        self.hits = 0
        self.misses = 0

    @property
    def inner(self) -> OrderRulesData:
        return self._inner

    async def _cached(self, key: tuple[str, str], lookup: Callable[[], Awaitable[Any]]) -> Any:
        task = self._cache.get(key)
        if task is not None:
            self.hits += 1
            return await task

        self.misses += 1
        task = asyncio.ensure_future(lookup())
        self._cache[key] = task
        task.add_done_callback(lambda done: self._forget_unanswered(key, done))
        return await task

    def _forget_unanswered(self, key: tuple[str, str], task: asyncio.Future) -> None:
        # Failed or cancelled lookups are not remembered
        if not (task.cancelled() or task.exception() is not None):
            return
        if self._cache.get(key) is task:
            del self._cache[key]

    def clear(self) -> None:
        self._cache.clear()
        logger.debug('Rules data cache cleared')

    async def customer_exists(self, customer_id: str) -> bool:
        return await self._cached(('customer_exists', customer_id), lambda: self._inner.customer_exists(customer_id))

    async def product_exists(self, product_id: str) -> bool:
        return await self._cached(('product_exists', product_id), lambda: self._inner.product_exists(product_id))

    async def try_get_product_price(self, product_id: str) -> Optional[Decimal]:
        return await self._cached(('product_price', product_id), lambda: self._inner.try_get_product_price(product_id))

    async def is_order_number_unique(self, order_number: str) -> bool:
        return await self._cached(
            ('order_number_unique', order_number), lambda: self._inner.is_order_number_unique(order_number)
        )

    async def try_get_customer_info(self, customer_id: str) -> Optional[CustomerInfo]:
        return await self._cached(('customer_info', customer_id), lambda: self._inner.try_get_customer_info(customer_id))

    async def try_get_product_info(self, product_id: str) -> Optional[ProductInfo]:
        return await self._cached(('product_info', product_id), lambda: self._inner.try_get_product_info(product_id))
