"""
Reference data returned by the rules-data abstraction.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class CustomerInfo(BaseModel):
    """Customer information needed for validation."""

    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(description='Customer identifier')]

    name: Annotated[str, Field(description='Customer display name')] = ''

    is_active: Annotated[bool, Field(description='Whether the customer may place orders')] = False

    credit_limit: Annotated[Decimal, Field(description='Customer credit limit')] = Decimal('0')


class ProductInfo(BaseModel):
    """Product information needed for validation."""

    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(description='Product identifier')]

    name: Annotated[str, Field(description='Product display name')] = ''

    is_active: Annotated[bool, Field(description='Whether the product may be ordered')] = False

    price: Annotated[Decimal, Field(description='Catalog list price')] = Decimal('0')

    stock_quantity: Annotated[int, Field(description='Quantity on hand')] = 0
