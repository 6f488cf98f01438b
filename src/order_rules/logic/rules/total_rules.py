"""Total amount rules."""

from decimal import Decimal

from order_rules.models.command import CreateOrderCommand, OrderValidationErrors
from order_rules.models.settings import OrderRulesSettings
from order_rules.models.validation import ORDER_LEVEL_FIELD, ValidationFailure


def calculate_lines_total(command: CreateOrderCommand) -> Decimal:
    return sum((line.line_total for line in command.lines or []), Decimal('0'))


def validate_total_amount(command: CreateOrderCommand, settings: OrderRulesSettings) -> list[ValidationFailure]:
    failures: list[ValidationFailure] = []

    if command.total_amount <= 0:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.TOTAL_AMOUNT_MISMATCH.value,
            field='total_amount',
            message='Total amount must be greater than zero.',
            attempted_value=command.total_amount,
        ))

    if command.lines:
        difference = abs(command.total_amount - calculate_lines_total(command))
        if difference >= settings.total_tolerance:
            failures.append(ValidationFailure(
                code=OrderValidationErrors.TOTAL_AMOUNT_MISMATCH.value,
                field=ORDER_LEVEL_FIELD,
                message='Total amount does not match the sum of line totals.',
                attempted_value=command.total_amount,
            ))

    return failures
