"""
Order line rules.

Order-level checks (lines present, line count) come first, then every line is
checked on its own: product, quantity, stock and price against the catalog.
Per-line lookups for all lines run concurrently.
"""

import asyncio
from decimal import Decimal
from typing import Optional

from order_rules.dal import OrderRulesData
from order_rules.models.command import CreateOrderCommand, OrderLineCommand, OrderValidationErrors
from order_rules.models.rules_data import ProductInfo
from order_rules.models.settings import OrderRulesSettings
from order_rules.models.validation import ValidationFailure

FIELD = 'lines'


def line_field(index: int, name: Optional[str] = None) -> str:
    """Path of a line, or of one of its fields, e.g. lines[2].quantity."""
    path = f'{FIELD}[{index}]'
    return f'{path}.{name}' if name else path


async def _lookup_product(
    line: OrderLineCommand,
    rules_data: OrderRulesData,
) -> tuple[bool, Optional[ProductInfo], Optional[Decimal]]:
    if not line.product_id:
        return False, None, None
    exists, info, price = await asyncio.gather(
        rules_data.product_exists(line.product_id),
        rules_data.try_get_product_info(line.product_id),
        rules_data.try_get_product_price(line.product_id),
    )
    return exists, info, price


def _check_line(
    index: int,
    line: OrderLineCommand,
    exists: bool,
    info: Optional[ProductInfo],
    catalog_price: Optional[Decimal],
    settings: OrderRulesSettings,
) -> list[ValidationFailure]:
    failures: list[ValidationFailure] = []
    product_field = line_field(index, 'product_id')

    if not line.product_id or not line.product_id.strip():
        failures.append(ValidationFailure(
            code=OrderValidationErrors.PRODUCT_REQUIRED.value,
            field=product_field,
            message='Product ID is required for each line.',
            attempted_value=line.product_id,
        ))

    if line.product_id:
        if not exists:
            failures.append(ValidationFailure(
                code=OrderValidationErrors.PRODUCT_NOT_FOUND.value,
                field=product_field,
                message='Product does not exist.',
                attempted_value=line.product_id,
            ))
        if info is None or not info.is_active:
            failures.append(ValidationFailure(
                code=OrderValidationErrors.PRODUCT_INACTIVE.value,
                field=product_field,
                message='Product is inactive and cannot be ordered.',
                attempted_value=line.product_id,
            ))

    if line.quantity <= 0:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.QUANTITY_INVALID.value,
            field=line_field(index, 'quantity'),
            message='Quantity must be greater than zero.',
            attempted_value=line.quantity,
        ))
    elif line.quantity > settings.max_quantity:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.QUANTITY_INVALID.value,
            field=line_field(index, 'quantity'),
            message=f'Quantity cannot exceed {settings.max_quantity}.',
            attempted_value=line.quantity,
        ))

    # Unknown products pass; PRODUCT_NOT_FOUND already covers them
    if line.product_id and line.quantity > 0 and info is not None and info.stock_quantity < line.quantity:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.INSUFFICIENT_STOCK.value,
            field=line_field(index),
            message='Insufficient stock for requested quantity.',
            attempted_value=line.quantity,
        ))

    if line.unit_price <= 0:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.UNIT_PRICE_INVALID.value,
            field=line_field(index, 'unit_price'),
            message='Unit price must be greater than zero.',
            attempted_value=line.unit_price,
        ))
    elif line.product_id and catalog_price is not None:
        if line.unit_price < catalog_price * settings.min_price_ratio:
            failures.append(ValidationFailure(
                code=OrderValidationErrors.UNIT_PRICE_TOO_LOW.value,
                field=line_field(index),
                message='Unit price is too low compared to catalog price.',
                attempted_value=line.unit_price,
            ))
        if line.unit_price > catalog_price * settings.max_price_ratio:
            failures.append(ValidationFailure(
                code=OrderValidationErrors.UNIT_PRICE_TOO_HIGH.value,
                field=line_field(index),
                message='Unit price seems too high compared to catalog price.',
                attempted_value=line.unit_price,
            ))

    return failures


async def validate_line(
    index: int,
    line: OrderLineCommand,
    rules_data: OrderRulesData,
    settings: OrderRulesSettings,
) -> list[ValidationFailure]:
    """Check a single line at position index."""
    exists, info, catalog_price = await _lookup_product(line, rules_data)
    return _check_line(index, line, exists, info, catalog_price, settings)


async def validate_lines(
    command: CreateOrderCommand,
    rules_data: OrderRulesData,
    settings: OrderRulesSettings,
) -> list[ValidationFailure]:
    failures: list[ValidationFailure] = []
    lines = command.lines

    if not lines:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.LINES_REQUIRED.value,
            field=FIELD,
            message='At least one order line is required.',
            attempted_value=lines,
        ))
        return failures

    if len(lines) > settings.max_lines:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.TOO_MANY_LINES.value,
            field=FIELD,
            message=f'Order cannot have more than {settings.max_lines} lines.',
            attempted_value=len(lines),
        ))

    # gather keeps results in line order
    per_line = await asyncio.gather(*(
        validate_line(index, line, rules_data, settings) for index, line in enumerate(lines)
    ))
    for line_failures in per_line:
        failures.extend(line_failures)

    return failures
