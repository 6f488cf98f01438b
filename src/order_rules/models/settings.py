"""
Thresholds used by the order rules.

Defaults reproduce the rule set as shipped; deployments may override them
through AWS AppConfig (see handlers.utils.dynamic_configuration).
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OrderRulesSettings(BaseModel):
    """Numeric limits applied by CreateOrderValidator."""

    model_config = ConfigDict(frozen=True)

    max_days_in_past: Annotated[int, Field(
        ge=0,
        description='How many days before today an order date may be'
    )] = 1

    max_days_in_future: Annotated[int, Field(
        ge=0,
        description='How many days after today an order date may be'
    )] = 30

    order_number_min_length: Annotated[int, Field(ge=1)] = 3

    order_number_max_length: Annotated[int, Field(ge=1)] = 50

    max_lines: Annotated[int, Field(
        ge=1,
        description='Maximum number of lines per order'
    )] = 100

    max_quantity: Annotated[int, Field(
        ge=1,
        description='Maximum quantity per line'
    )] = 1000

    min_price_ratio: Annotated[Decimal, Field(
        ge=0,
        description='Lowest unit price allowed as a fraction of catalog price'
    )] = Decimal('0.9')

    max_price_ratio: Annotated[Decimal, Field(
        gt=0,
        description='Highest unit price allowed as a multiple of catalog price'
    )] = Decimal('2.0')

    total_tolerance: Annotated[Decimal, Field(
        gt=0,
        description='Allowed rounding difference between total and sum of lines'
    )] = Decimal('0.01')

    @model_validator(mode='after')
    def check_ranges(self) -> 'OrderRulesSettings':
        if self.order_number_min_length > self.order_number_max_length:
            raise ValueError('order_number_min_length cannot exceed order_number_max_length')
        if self.min_price_ratio > self.max_price_ratio:
            raise ValueError('min_price_ratio cannot exceed max_price_ratio')
        return self
