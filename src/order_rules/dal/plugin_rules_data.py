"""
Rules data for the plugin host.

Inside the platform pipeline a lookup failure must never abort the
operation with an unexpected error. Every failure is logged and turned into
the safe answer instead: not found, no info, not unique.
"""

from decimal import Decimal
from typing import Optional

from order_rules.dal import BaseOrderRulesData
from order_rules.dal import dataverse_tables as tables
from order_rules.dal.dataverse_client import DataverseClient, DataverseServiceError, quote_literal
from order_rules.handlers.utils.observability import logger
from order_rules.models.rules_data import CustomerInfo, ProductInfo
from order_rules.models.validation import to_guid


class DataversePluginRulesData(BaseOrderRulesData):
    """Dataverse lookups that swallow platform failures."""

    def __init__(
        self,
        client: DataverseClient,
        customer_active_statecode: int = 0,
        product_active_statecode: int = 1,
        orders_entity_set: str = tables.ORDERS,
    ):
        if client is None:
            raise ValueError('client is required')
        self._client = client
        self._customer_active_statecode = customer_active_statecode
        self._product_active_statecode = product_active_statecode
        self._orders_entity_set = orders_entity_set

    async def customer_exists(self, customer_id: str) -> bool:
        customer_guid = to_guid(customer_id)
        if customer_guid is None:
            return False

        logger.debug(f'Checking if customer exists: {customer_id}')
        try:
            await self._client.retrieve(tables.ACCOUNTS, customer_guid, [tables.ACCOUNT_ID])
        except DataverseServiceError as exc:
            logger.debug(f'Customer not found: {customer_id} - {exc.message}')
            return False
        return True

    async def product_exists(self, product_id: str) -> bool:
        product_guid = to_guid(product_id)
        if product_guid is None:
            return False

        logger.debug(f'Checking if product exists: {product_id}')
        try:
            await self._client.retrieve(tables.PRODUCTS, product_guid, [tables.PRODUCT_ID])
        except DataverseServiceError as exc:
            logger.debug(f'Product not found: {product_id} - {exc.message}')
            return False
        return True

    async def try_get_product_price(self, product_id: str) -> Optional[Decimal]:
        product_guid = to_guid(product_id)
        if product_guid is None:
            return None

        try:
            record = await self._client.retrieve(tables.PRODUCTS, product_guid, tables.PRICE_COLUMNS)
        except DataverseServiceError as exc:
            logger.debug(f'Failed to get product price: {product_id} - {exc.message}')
            return None
        return tables.to_decimal(record.get('price'))

    async def is_order_number_unique(self, order_number: str) -> bool:
        if not order_number:
            return False

        try:
            result = await self._client.retrieve_multiple(
                self._orders_entity_set,
                filter=f'{tables.ORDER_NUMBER} eq {quote_literal(order_number)}',
                columns=[tables.ORDER_ID],
                top=1,
            )
        except DataverseServiceError as exc:
            # Not unique on error, so a broken lookup cannot let a duplicate through
            logger.warning(f'Failed to check order number uniqueness: {order_number} - {exc.message}')
            return False

        is_unique = not result.entities
        logger.debug(f'Order number uniqueness check: {order_number} = {is_unique}')
        return is_unique

    async def try_get_customer_info(self, customer_id: str) -> Optional[CustomerInfo]:
        customer_guid = to_guid(customer_id)
        if customer_guid is None:
            return None

        try:
            record = await self._client.retrieve(tables.ACCOUNTS, customer_guid, tables.CUSTOMER_COLUMNS)
        except DataverseServiceError as exc:
            logger.debug(f'Failed to get customer info: {customer_id} - {exc.message}')
            return None
        return tables.to_customer_info(customer_id, record, self._customer_active_statecode)

    async def try_get_product_info(self, product_id: str) -> Optional[ProductInfo]:
        product_guid = to_guid(product_id)
        if product_guid is None:
            return None

        try:
            record = await self._client.retrieve(tables.PRODUCTS, product_guid, tables.PRODUCT_COLUMNS)
        except DataverseServiceError as exc:
            logger.debug(f'Failed to get product info: {product_id} - {exc.message}')
            return None
        return tables.to_product_info(product_id, record, self._product_active_statecode, clamp_stock=False)
