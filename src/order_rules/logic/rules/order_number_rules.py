"""Order number rules: required, bounded length, unique."""

from order_rules.dal import OrderRulesData
from order_rules.models.command import CreateOrderCommand, OrderValidationErrors
from order_rules.models.settings import OrderRulesSettings
from order_rules.models.validation import ValidationFailure

FIELD = 'order_number'


async def validate_order_number(
    command: CreateOrderCommand,
    rules_data: OrderRulesData,
    settings: OrderRulesSettings,
) -> list[ValidationFailure]:
    order_number = command.order_number
    failures: list[ValidationFailure] = []

    if not order_number or not order_number.strip():
        failures.append(ValidationFailure(
            code=OrderValidationErrors.ORDER_NUMBER_REQUIRED.value,
            field=FIELD,
            message='Order number is required.',
            attempted_value=order_number,
        ))

    # Length applies to any value that was given, including the empty string
    if order_number is not None and not (
        settings.order_number_min_length <= len(order_number) <= settings.order_number_max_length
    ):
        failures.append(ValidationFailure(
            code=OrderValidationErrors.ORDER_NUMBER_REQUIRED.value,
            field=FIELD,
            message=(
                f'Order number must be between {settings.order_number_min_length} '
                f'and {settings.order_number_max_length} characters.'
            ),
            attempted_value=order_number,
        ))

    if order_number and not await rules_data.is_order_number_unique(order_number):
        failures.append(ValidationFailure(
            code=OrderValidationErrors.ORDER_NUMBER_NOT_UNIQUE.value,
            field=FIELD,
            message='Order number must be unique.',
            attempted_value=order_number,
        ))

    return failures
