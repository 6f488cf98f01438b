"""
Business Logic Layer for the orders web API.

OrderService validates orders with the shared CreateOrderValidator and reads
and writes order records in Dataverse.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from aws_lambda_powertools.metrics import MetricUnit

from order_rules.dal import dataverse_tables as tables
from order_rules.dal.dataverse_client import (
    DataverseClient,
    DataverseRecordNotFoundError,
    formatted_value,
    quote_literal,
)
from order_rules.handlers.utils.errors import OrderRejectedError
from order_rules.handlers.utils.observability import logger, metrics, tracer
from order_rules.logic.entity_mapper import parse_date
from order_rules.logic.validator import CreateOrderValidator
from order_rules.models.command import CreateOrderCommand
from order_rules.models.output import CreateOrderResponse, OrderDetailsResponse, OrderLineResponse, PagedResult
from order_rules.models.validation import ValidationResult, to_guid

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class OrderValidationFailedError(OrderRejectedError):
    """Raised when an order to be created breaks business rules."""

    def __init__(self, result: ValidationResult):
        super().__init__(f'Order validation failed: {result.get_errors_as_string()}', 'ORDER_VALIDATION_FAILED')
        self.result = result


def map_to_details(record: dict[str, Any]) -> OrderDetailsResponse:
    """Map a new_orders record to the API response; the first line is stored on the order."""
    lines: list[OrderLineResponse] = []
    product_id = record.get('_new_productid_value')
    if product_id:
        quantity = int(record.get('new_quantity') or 0)
        unit_price = tables.to_decimal(record.get('new_unitprice')) or Decimal('0')
        lines.append(OrderLineResponse(
            product_id=str(product_id),
            product_name=formatted_value(record, '_new_productid_value') or '',
            quantity=quantity,
            unit_price=unit_price,
            line_total=quantity * unit_price,
        ))

    return OrderDetailsResponse(
        order_id=record[tables.ORDER_ID],
        order_number=record.get(tables.ORDER_NUMBER) or '',
        customer_id=str(record.get('_new_customerid_value') or ''),
        order_date=parse_date(record.get('new_orderdate')),
        total_amount=tables.to_decimal(record.get('new_totalamount')) or Decimal('0'),
        lines=lines,
    )


class OrderService:
    """Business logic service for order management."""

    def __init__(
        self,
        client: DataverseClient,
        validator: CreateOrderValidator,
        orders_entity_set: str = tables.ORDERS,
    ):
        """
        Initialize order service.

        Args:
            client: Dataverse client for order records
            validator: Shared order validator, bound to the API rules data
            orders_entity_set: Entity set name of the order table
        """
        if client is None:
            raise ValueError('client is required')
        if validator is None:
            raise ValueError('validator is required')
        self.client = client
        self.validator = validator
        self.orders_entity_set = orders_entity_set

    @tracer.capture_method
    async def validate_order(self, command: CreateOrderCommand) -> ValidationResult:
        return await self.validator.validate(command)

    @tracer.capture_method
    async def create_order(self, command: CreateOrderCommand) -> CreateOrderResponse:
        """
        Validate and create an order.

        Only the first line is written to the order record.

        Raises:
            OrderValidationFailedError: If any business rule fails
            DataverseServiceError: If the record cannot be created
        """
        logger.info('Creating order', extra={'order_number': command.order_number})

        result = await self.validator.validate(command)
        if not result.is_valid:
            logger.warning('Order validation failed', extra={
                'order_number': command.order_number,
                'errors': result.get_errors_as_string(),
            })
            raise OrderValidationFailedError(result)

        payload: dict[str, Any] = {
            'new_customerid@odata.bind': f'/{tables.ACCOUNTS}({to_guid(command.customer_id)})',
            'new_orderdate': command.order_date.isoformat(),
            'new_ordernumber': command.order_number,
            'new_totalamount': str(command.total_amount),
        }
        if command.lines:
            first_line = command.lines[0]
            payload['new_productid@odata.bind'] = f'/{tables.PRODUCTS}({to_guid(first_line.product_id)})'
            payload['new_quantity'] = first_line.quantity
            payload['new_unitprice'] = str(first_line.unit_price)

        order_id = await self.client.create(self.orders_entity_set, payload)

        metrics.add_metric(name='OrderCreated', unit=MetricUnit.Count, value=1)
        tracer.put_annotation(key='order_id', value=str(order_id))
        logger.info('Order created in Dataverse', extra={'order_id': str(order_id)})

        return CreateOrderResponse(
            order_id=order_id,
            order_number=command.order_number or '',
            created_at_utc=datetime.now(timezone.utc),
        )

    @tracer.capture_method
    async def get_order_by_id(self, order_id: UUID) -> Optional[OrderDetailsResponse]:
        logger.debug('Retrieving order by id', extra={'order_id': str(order_id)})
        try:
            record = await self.client.retrieve(self.orders_entity_set, order_id, tables.ORDER_COLUMNS)
        except DataverseRecordNotFoundError:
            return None
        return map_to_details(record)

    @tracer.capture_method
    async def get_order_by_number(self, order_number: str) -> Optional[OrderDetailsResponse]:
        if not order_number or not order_number.strip():
            return None

        logger.debug('Retrieving order by number', extra={'order_number': order_number})
        result = await self.client.retrieve_multiple(
            self.orders_entity_set,
            filter=f'{tables.ORDER_NUMBER} eq {quote_literal(order_number)}',
            columns=tables.ORDER_COLUMNS,
            top=1,
        )
        return map_to_details(result.entities[0]) if result.entities else None

    @tracer.capture_method
    async def get_orders_by_customer(
        self,
        customer_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_number: int = 1,
    ) -> PagedResult[OrderDetailsResponse]:
        """
        One page of a customer's orders, newest first.

        Out-of-range paging falls back to defaults: a page size of zero or
        less becomes 50, larger than 100 becomes 100, page number below one
        becomes one.
        """
        if page_size <= 0:
            page_size = DEFAULT_PAGE_SIZE
        page_size = min(page_size, MAX_PAGE_SIZE)
        if page_number <= 0:
            page_number = 1

        customer_guid = to_guid(customer_id)
        if customer_guid is None:
            return PagedResult[OrderDetailsResponse].empty(page_number, page_size)

        logger.debug('Retrieving orders for customer', extra={'customer_id': customer_id, 'page': page_number})
        result = await self.client.retrieve_page(
            self.orders_entity_set,
            page_size=page_size,
            page_number=page_number,
            filter=f'_new_customerid_value eq {customer_guid}',
            columns=tables.ORDER_COLUMNS,
            order_by='new_orderdate desc',
        )
        items = [map_to_details(record) for record in result.entities]
        total = result.total_count if result.total_count is not None and result.total_count >= 0 else len(items)
        return PagedResult[OrderDetailsResponse](
            page_number=page_number,
            page_size=page_size,
            total_count=total,
            items=items,
        )
