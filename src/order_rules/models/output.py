"""
Output models for API responses using Pydantic.

This module defines the response bodies returned by the orders web API.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar('T')


class ApiModel(BaseModel):
    """Base for response models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class CreateOrderResponse(ApiModel):
    """Response model for successful order creation."""

    order_id: Annotated[UUID, Field(description='Identifier of the created order')]

    order_number: Annotated[str, Field(
        description='Order number of the created order',
        examples=['ORD-001']
    )]

    created_at_utc: Annotated[datetime, Field(description='Creation timestamp (UTC)')]


class OrderLineResponse(ApiModel):
    """A single line of an order as stored in Dataverse."""

    product_id: str
    product_name: str = ''
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderDetailsResponse(ApiModel):
    """Response model for retrieving an order."""

    order_id: UUID
    order_number: str
    customer_id: str
    order_date: Optional[datetime] = None
    total_amount: Decimal
    lines: list[OrderLineResponse] = Field(default_factory=list)


class PagedResult(ApiModel, Generic[T]):
    """A page of results."""

    page_number: int
    page_size: int
    total_count: int
    items: list[T] = Field(default_factory=list)

    @classmethod
    def empty(cls, page_number: int = 1, page_size: int = 0) -> 'PagedResult[T]':
        return cls(page_number=page_number, page_size=page_size, total_count=0, items=[])


class ApiErrorResponse(ApiModel):
    """Standard API error response, also used for validation problems."""

    type: Annotated[str, Field(
        description='Error type',
        examples=['ValidationError', 'ServerError']
    )]

    title: Annotated[str, Field(
        description='Human-readable summary',
        examples=['Order validation failed']
    )]

    status: Annotated[int, Field(description='HTTP status code')]

    detail: Annotated[Optional[str], Field(description='Detailed error description')] = None

    errors: Annotated[Optional[dict[str, list[str]]], Field(
        description='Validation errors by field'
    )] = None

    trace_id: Annotated[Optional[str], Field(description='Request correlation ID')] = None


class HealthCheckOutput(ApiModel):
    """Response model for health check endpoints."""

    status: Annotated[str, Field(examples=['Healthy', 'Unhealthy'])]

    timestamp: datetime

    service: Annotated[str, Field(examples=['Orders API'])] = 'Orders API'

    version: Annotated[str, Field(examples=['1.0.0'])] = '1.0.0'

    environment: Optional[str] = None

    checks: Optional[dict[str, Any]] = None
