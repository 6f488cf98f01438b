"""
Rules data for the web API host.

A missing record is an ordinary answer (False or None). Any other failure is
logged and raised as RulesDataError so the request fails with a 5xx instead
of reporting a misleading validation result.
"""

from decimal import Decimal
from typing import Optional

from order_rules.dal import BaseOrderRulesData
from order_rules.dal import dataverse_tables as tables
from order_rules.dal.dataverse_client import (
    DataverseClient,
    DataverseRecordNotFoundError,
    DataverseServiceError,
    quote_literal,
)
from order_rules.handlers.utils.errors import UpstreamServiceError
from order_rules.handlers.utils.observability import logger, tracer
from order_rules.models.rules_data import CustomerInfo, ProductInfo
from order_rules.models.validation import to_guid


class RulesDataError(UpstreamServiceError):
    """Raised when a rules-data lookup fails for a reason other than a missing record."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message, 'RULES_DATA_ERROR', retry_after=retry_after)


class DataverseApiRulesData(BaseOrderRulesData):
    """Dataverse lookups that raise on platform failures."""

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

    @tracer.capture_method
    async def customer_exists(self, customer_id: str) -> bool:
        customer_guid = to_guid(customer_id)
        if customer_guid is None:
            logger.debug('Invalid customer ID format', extra={'customer_id': customer_id})
            return False

        try:
            await self._client.retrieve(tables.ACCOUNTS, customer_guid, [tables.ACCOUNT_ID])
        except DataverseRecordNotFoundError:
            logger.debug('Customer not found', extra={'customer_id': customer_id})
            return False
        except DataverseServiceError as exc:
            logger.exception('Error checking customer existence', extra={'customer_id': customer_id})
            raise RulesDataError(f'Failed to check customer existence: {customer_id}', retry_after=exc.retry_after) from exc
        return True

    @tracer.capture_method
    async def product_exists(self, product_id: str) -> bool:
        product_guid = to_guid(product_id)
        if product_guid is None:
            logger.debug('Invalid product ID format', extra={'product_id': product_id})
            return False

        try:
            await self._client.retrieve(tables.PRODUCTS, product_guid, [tables.PRODUCT_ID])
        except DataverseRecordNotFoundError:
            logger.debug('Product not found', extra={'product_id': product_id})
            return False
        except DataverseServiceError as exc:
            logger.exception('Error checking product existence', extra={'product_id': product_id})
            raise RulesDataError(f'Failed to check product existence: {product_id}', retry_after=exc.retry_after) from exc
        return True

    @tracer.capture_method
    async def try_get_product_price(self, product_id: str) -> Optional[Decimal]:
        product_guid = to_guid(product_id)
        if product_guid is None:
            return None

        try:
            record = await self._client.retrieve(tables.PRODUCTS, product_guid, tables.PRICE_COLUMNS)
        except DataverseRecordNotFoundError:
            logger.debug('Product not found for price lookup', extra={'product_id': product_id})
            return None
        except DataverseServiceError as exc:
            logger.exception('Error getting product price', extra={'product_id': product_id})
            raise RulesDataError(f'Failed to get product price: {product_id}', retry_after=exc.retry_after) from exc
        return tables.to_decimal(record.get('price'))

    @tracer.capture_method
    async def is_order_number_unique(self, order_number: str) -> bool:
        if not order_number:
            logger.debug('Empty order number provided for uniqueness check')
            return False

        try:
            result = await self._client.retrieve_multiple(
                self._orders_entity_set,
                filter=f'{tables.ORDER_NUMBER} eq {quote_literal(order_number)}',
                columns=[tables.ORDER_ID],
                top=1,
            )
        except DataverseServiceError as exc:
            logger.exception('Error checking order number uniqueness', extra={'order_number': order_number})
            raise RulesDataError(f'Failed to check order number uniqueness: {order_number}', retry_after=exc.retry_after) from exc
        return not result.entities

    @tracer.capture_method
    async def try_get_customer_info(self, customer_id: str) -> Optional[CustomerInfo]:
        customer_guid = to_guid(customer_id)
        if customer_guid is None:
            return None

        try:
            record = await self._client.retrieve(tables.ACCOUNTS, customer_guid, tables.CUSTOMER_COLUMNS)
        except DataverseRecordNotFoundError:
            logger.debug('Customer not found for info lookup', extra={'customer_id': customer_id})
            return None
        except DataverseServiceError as exc:
            logger.exception('Error getting customer info', extra={'customer_id': customer_id})
            raise RulesDataError(f'Failed to get customer info: {customer_id}', retry_after=exc.retry_after) from exc

        info = tables.to_customer_info(customer_id, record, self._customer_active_statecode)
        logger.debug('Customer info retrieved', extra={'customer_id': customer_id, 'is_active': info.is_active})
        return info

    @tracer.capture_method
    async def try_get_product_info(self, product_id: str) -> Optional[ProductInfo]:
        product_guid = to_guid(product_id)
        if product_guid is None:
            return None

        try:
            record = await self._client.retrieve(tables.PRODUCTS, product_guid, tables.PRODUCT_COLUMNS)
        except DataverseRecordNotFoundError:
            logger.debug('Product not found for info lookup', extra={'product_id': product_id})
            return None
        except DataverseServiceError as exc:
            logger.exception('Error getting product info', extra={'product_id': product_id})
            raise RulesDataError(f'Failed to get product info: {product_id}', retry_after=exc.retry_after) from exc

        info = tables.to_product_info(product_id, record, self._product_active_statecode, clamp_stock=True)
        logger.debug(
            'Product info retrieved',
            extra={'product_id': product_id, 'is_active': info.is_active, 'stock': info.stock_quantity},
        )
        return info
