"""Customer rules: the customer must be given, exist and be active."""

import asyncio

from order_rules.dal import OrderRulesData
from order_rules.models.command import CreateOrderCommand, OrderValidationErrors
from order_rules.models.validation import ValidationFailure

FIELD = 'customer_id'


async def validate_customer(command: CreateOrderCommand, rules_data: OrderRulesData) -> list[ValidationFailure]:
    customer_id = command.customer_id
    failures: list[ValidationFailure] = []

    if not customer_id or not customer_id.strip():
        failures.append(ValidationFailure(
            code=OrderValidationErrors.CUSTOMER_REQUIRED.value,
            field=FIELD,
            message='Customer ID is required.',
            attempted_value=customer_id,
        ))

    if not customer_id:
        return failures

    exists, info = await asyncio.gather(
        rules_data.customer_exists(customer_id),
        rules_data.try_get_customer_info(customer_id),
    )

    if not exists:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.CUSTOMER_NOT_FOUND.value,
            field=FIELD,
            message='Customer does not exist.',
            attempted_value=customer_id,
        ))

    # A customer we know nothing about cannot be confirmed active
    if info is None or not info.is_active:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.CUSTOMER_INACTIVE.value,
            field=FIELD,
            message='Customer is inactive and cannot place orders.',
            attempted_value=customer_id,
        ))

    return failures
