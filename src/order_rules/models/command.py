"""
Order command models shared by every host.

The command is the common in-memory shape of a proposed order. Both the
plugin webhook and the web API map their inputs into it before handing it to
the validator, so it deliberately carries no business validation itself.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderValidationErrors(str, Enum):
    """Validation error codes reported by the order rules."""

    CUSTOMER_REQUIRED = 'CUSTOMER_REQUIRED'
    CUSTOMER_NOT_FOUND = 'CUSTOMER_NOT_FOUND'
    CUSTOMER_INACTIVE = 'CUSTOMER_INACTIVE'
    ORDER_DATE_INVALID = 'ORDER_DATE_INVALID'
    ORDER_NUMBER_REQUIRED = 'ORDER_NUMBER_REQUIRED'
    ORDER_NUMBER_NOT_UNIQUE = 'ORDER_NUMBER_NOT_UNIQUE'
    LINES_REQUIRED = 'LINES_REQUIRED'
    TOO_MANY_LINES = 'TOO_MANY_LINES'
    PRODUCT_REQUIRED = 'PRODUCT_REQUIRED'
    PRODUCT_NOT_FOUND = 'PRODUCT_NOT_FOUND'
    PRODUCT_INACTIVE = 'PRODUCT_INACTIVE'
    QUANTITY_INVALID = 'QUANTITY_INVALID'
    INSUFFICIENT_STOCK = 'INSUFFICIENT_STOCK'
    UNIT_PRICE_INVALID = 'UNIT_PRICE_INVALID'
    UNIT_PRICE_TOO_LOW = 'UNIT_PRICE_TOO_LOW'
    UNIT_PRICE_TOO_HIGH = 'UNIT_PRICE_TOO_HIGH'
    TOTAL_AMOUNT_MISMATCH = 'TOTAL_AMOUNT_MISMATCH'


class OrderLineCommand(BaseModel):
    """A single order line item."""

    model_config = ConfigDict(frozen=True)

    product_id: Annotated[Optional[str], Field(
        description='Product identifier (GUID as string)',
        examples=['5f1c1a4e-8b0e-4c8b-9d1e-0f6b1c2d3e4f']
    )] = None

    quantity: Annotated[int, Field(
        description='Requested quantity',
        examples=[2]
    )] = 0

    unit_price: Annotated[Decimal, Field(
        description='Unit price charged on this line',
        examples=['10.00']
    )] = Decimal('0')

    @property
    def line_total(self) -> Decimal:
        """Calculated line total."""
        return self.quantity * self.unit_price


class CreateOrderCommand(BaseModel):
    """Command to create a new order."""

    model_config = ConfigDict(frozen=True)

    customer_id: Annotated[Optional[str], Field(
        description='Customer identifier (GUID as string)',
        examples=['0a7c2f5e-1d2b-4c3a-8e9f-123456789abc']
    )] = None

    order_date: Annotated[datetime, Field(
        description='Date the order is placed for'
    )]

    order_number: Annotated[Optional[str], Field(
        description='Business order number, unique across orders',
        examples=['ORD-001']
    )] = None

    total_amount: Annotated[Decimal, Field(
        description='Declared order total',
        examples=['20.00']
    )] = Decimal('0')

    lines: Annotated[Optional[list[OrderLineCommand]], Field(
        description='Order line items'
    )] = None
