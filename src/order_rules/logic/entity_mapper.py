"""
Maps Dataverse order entities to CreateOrderCommand.

Attribute values come from the webhook serialization: lookups are
{"Id", "LogicalName"} objects, currency is {"Value"}, dates are either ISO
strings or the WCF form /Date(milliseconds)/.
"""

import json
import re
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from order_rules.handlers.utils.errors import OrderRejectedError
from order_rules.handlers.utils.observability import logger
from order_rules.models.command import CreateOrderCommand, OrderLineCommand
from order_rules.models.plugin_context import DataverseEntity

ORDER_ENTITY = 'new_order'

CUSTOMER_ATTRIBUTE = 'new_customerid'
ORDER_DATE_ATTRIBUTE = 'new_orderdate'
ORDER_NUMBER_ATTRIBUTE = 'new_ordernumber'
TOTAL_AMOUNT_ATTRIBUTE = 'new_totalamount'
PRODUCT_ATTRIBUTE = 'new_productid'
QUANTITY_ATTRIBUTE = 'new_quantity'
UNIT_PRICE_ATTRIBUTE = 'new_unitprice'
LINES_JSON_ATTRIBUTE = 'new_orderlinesjson'

REQUIRED_ATTRIBUTES = (CUSTOMER_ATTRIBUTE, ORDER_DATE_ATTRIBUTE, ORDER_NUMBER_ATTRIBUTE, TOTAL_AMOUNT_ATTRIBUTE)

_WCF_DATE = re.compile(r'^/Date\((-?\d+)([+-]\d{4})?\)/$')


class EntityMappingError(OrderRejectedError):
    """Raised when an order entity cannot be mapped to a command."""

    def __init__(self, message: str):
        super().__init__(message, 'ENTITY_MAPPING_ERROR')


class JsonOrderLine(BaseModel):
    """Line item as stored in new_orderlinesjson."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: Optional[str] = None
    quantity: int = 0
    unit_price: Decimal = Decimal('0')


_json_lines = TypeAdapter(list[JsonOrderLine])


def get_entity_reference_id(value: Any) -> str:
    """Id of an EntityReference value, or '' when absent."""
    if isinstance(value, dict):
        reference_id = value.get('Id')
        return str(reference_id).lower() if reference_id else ''
    return ''


def get_money_value(value: Any, default: Decimal = Decimal('0')) -> Decimal:
    """Amount of a Money value, or default when absent."""
    if isinstance(value, dict):
        value = value.get('Value')
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise EntityMappingError(f'Invalid money value: {value!r}') from exc


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a serialized DateTime. WCF dates are UTC and returned as naive UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value

    text = str(value)
    match = _WCF_DATE.match(text)
    if match:
        milliseconds = int(match.group(1))
        return datetime.fromtimestamp(milliseconds / 1000, tz=timezone.utc).replace(tzinfo=None)

    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError as exc:
        raise EntityMappingError(f'Invalid date value: {text!r}') from exc


def map_order_lines(entity: DataverseEntity) -> list[OrderLineCommand]:
    """
    Collect the order lines of an entity.

    The first line may be stored directly on the order (new_productid,
    new_quantity, new_unitprice); further lines come from the JSON array in
    new_orderlinesjson.

    Raises:
        EntityMappingError: If new_orderlinesjson is not a readable line array
    """
    lines: list[OrderLineCommand] = []

    product_id = get_entity_reference_id(entity.get(PRODUCT_ATTRIBUTE))
    if product_id:
        lines.append(OrderLineCommand(
            product_id=product_id,
            quantity=int(entity.get(QUANTITY_ATTRIBUTE) or 0),
            unit_price=get_money_value(entity.get(UNIT_PRICE_ATTRIBUTE)),
        ))

    lines_json = entity.get(LINES_JSON_ATTRIBUTE)
    if lines_json:
        try:
            parsed = _json_lines.validate_python(json.loads(lines_json))
        except (json.JSONDecodeError, TypeError, PydanticValidationError) as exc:
            raise EntityMappingError(f'Invalid order lines JSON: {exc}') from exc
        lines.extend(
            OrderLineCommand(product_id=line.product_id, quantity=line.quantity, unit_price=line.unit_price)
            for line in parsed
        )

    logger.debug(f'Mapped {len(lines)} order lines')
    return lines


def map_to_create_order_command(
    entity: DataverseEntity,
    today: Callable[[], date] = date.today,
) -> CreateOrderCommand:
    """
    Map an order entity to CreateOrderCommand.

    Missing values map to their empty form so the validator reports them:
    no customer is '', no number is '', no total is 0. A missing order date
    defaults to today.

    Raises:
        EntityMappingError: If a value is present but malformed, including
            unreadable order lines JSON
    """
    if entity is None:
        raise ValueError('entity is required')

    order_date = parse_date(entity.get(ORDER_DATE_ATTRIBUTE)) or datetime.combine(today(), time.min)

    try:
        command = CreateOrderCommand(
            customer_id=get_entity_reference_id(entity.get(CUSTOMER_ATTRIBUTE)),
            order_date=order_date,
            order_number=entity.get(ORDER_NUMBER_ATTRIBUTE) or '',
            total_amount=get_money_value(entity.get(TOTAL_AMOUNT_ATTRIBUTE)),
            lines=map_order_lines(entity),
        )
    except EntityMappingError:
        raise
    except (ValueError, TypeError) as exc:
        # pydantic ValidationError is a ValueError
        raise EntityMappingError(f'Invalid order attribute: {exc}') from exc

    logger.debug('Mapped entity to CreateOrderCommand', extra={
        'customer_id': command.customer_id,
        'order_number': command.order_number,
        'total_amount': str(command.total_amount),
    })
    return command


def has_required_order_fields(entity: Optional[DataverseEntity]) -> bool:
    """Whether the entity carries customer, date, number and total."""
    if entity is None:
        return False
    return all(entity.contains(attribute) for attribute in REQUIRED_ATTRIBUTES)
