"""Order date rules: the date must fall inside the allowed window around today."""

from datetime import date, datetime, time, timedelta

from order_rules.models.command import CreateOrderCommand, OrderValidationErrors
from order_rules.models.settings import OrderRulesSettings
from order_rules.models.validation import ValidationFailure

FIELD = 'order_date'


def _days(count: int) -> str:
    return f'{count} day' if count == 1 else f'{count} days'


def order_date_window(today: date, settings: OrderRulesSettings) -> tuple[datetime, datetime]:
    """Earliest and latest accepted order dates, both at midnight."""
    earliest = datetime.combine(today - timedelta(days=settings.max_days_in_past), time.min)
    latest = datetime.combine(today + timedelta(days=settings.max_days_in_future), time.min)
    return earliest, latest


def validate_order_date(command: CreateOrderCommand, today: date, settings: OrderRulesSettings) -> list[ValidationFailure]:
    order_date = command.order_date
    if order_date.tzinfo is not None:
        order_date = order_date.replace(tzinfo=None)

    earliest, latest = order_date_window(today, settings)
    failures: list[ValidationFailure] = []

    if order_date < earliest:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.ORDER_DATE_INVALID.value,
            field=FIELD,
            message=f'Order date cannot be more than {_days(settings.max_days_in_past)} in the past.',
            attempted_value=command.order_date,
        ))

    if order_date > latest:
        failures.append(ValidationFailure(
            code=OrderValidationErrors.ORDER_DATE_INVALID.value,
            field=FIELD,
            message=f'Order date cannot be more than {_days(settings.max_days_in_future)} in the future.',
            attempted_value=command.order_date,
        ))

    return failures
