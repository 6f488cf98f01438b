"""
Input models for request validation using Pydantic.

This module defines the request bodies accepted by the orders web API. Shape
checks live here; business rules live in CreateOrderValidator.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from order_rules.models.command import CreateOrderCommand, OrderLineCommand


class OrderLineRequest(BaseModel):
    """Request model for a single order line."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: Annotated[str, Field(
        description='Product identifier (GUID)',
        examples=['5f1c1a4e-8b0e-4c8b-9d1e-0f6b1c2d3e4f']
    )]

    quantity: Annotated[int, Field(
        description='Requested quantity',
        examples=[1, 5, 10]
    )]

    unit_price: Annotated[Decimal, Field(
        description='Unit price',
        examples=['10.00']
    )]

    def to_command(self) -> OrderLineCommand:
        return OrderLineCommand(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
        )


class CreateOrderRequest(BaseModel):
    """Request model for creating or validating an order."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customer_id: Annotated[str, Field(
        min_length=1,
        description='Customer identifier (GUID)',
        examples=['0a7c2f5e-1d2b-4c3a-8e9f-123456789abc']
    )]

    order_date: Annotated[Optional[datetime], Field(
        default=None,
        description='Order date, defaults to today when omitted'
    )] = None

    order_number: Annotated[str, Field(
        min_length=3,
        max_length=50,
        description='Unique order number',
        examples=['ORD-001']
    )]

    total_amount: Annotated[Decimal, Field(
        description='Total order amount',
        examples=['20.00']
    )]

    lines: Annotated[list[OrderLineRequest], Field(
        min_length=1,
        description='Order line items'
    )]

    @field_validator('total_amount')
    @classmethod
    def validate_total_amount(cls, v: Decimal) -> Decimal:
        """Validate that the total amount is positive."""
        # We don't use Field(gt=0) because pydantic exports it incorrectly to OpenAPI doc
        if v < Decimal('0.01'):
            raise ValueError('Total amount must be greater than zero')
        return v

    def to_command(self) -> CreateOrderCommand:
        """Convert this request to the shared domain command."""
        return CreateOrderCommand(
            customer_id=self.customer_id,
            order_date=self.order_date or datetime.combine(date.today(), time.min),
            order_number=self.order_number,
            total_amount=self.total_amount,
            lines=[line.to_command() for line in self.lines],
        )
