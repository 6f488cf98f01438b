"""
CreateOrderValidator - the shared order validation rule set.

Both hosts build a CreateOrderCommand and hand it to this validator together
with their own OrderRulesData implementation. Every rule runs, failures are
collected into a ValidationResult, and nothing is raised for a broken rule.
A lookup that raises does propagate: the caller decides what an unavailable
data source means.
"""

import asyncio
from datetime import date
from typing import Callable, Optional

from aws_lambda_powertools.metrics import MetricUnit

from order_rules.dal import OrderRulesData
from order_rules.handlers.utils.observability import logger, metrics, tracer
from order_rules.logic.rules import (
    validate_customer,
    validate_lines,
    validate_order_date,
    validate_order_number,
    validate_total_amount,
)
from order_rules.models.command import CreateOrderCommand
from order_rules.models.settings import OrderRulesSettings
from order_rules.models.validation import ValidationResult


class CreateOrderValidator:
    """Validates a CreateOrderCommand against the order business rules."""

    def __init__(
        self,
        rules_data: OrderRulesData,
        settings: Optional[OrderRulesSettings] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the validator.

        Args:
            rules_data: Lookup implementation supplied by the host
            settings: Rule thresholds, defaults when omitted
            today: Clock used for the order date window
        """
        if rules_data is None:
            raise ValueError('rules_data is required')
        self.rules_data = rules_data
        self.settings = settings or OrderRulesSettings()
        self._today = today

    @tracer.capture_method
    async def validate(self, command: CreateOrderCommand) -> ValidationResult:
        """
        Run every rule against the command.

        Args:
            command: Order to validate

        Returns:
            ValidationResult listing all failures, in rule order
        """
        if command is None:
            raise ValueError('command is required')

        logger.debug('Validating order', extra={
            'order_number': command.order_number,
            'customer_id': command.customer_id,
            'line_count': len(command.lines or []),
        })

        customer, order_number, lines = await asyncio.gather(
            validate_customer(command, self.rules_data),
            validate_order_number(command, self.rules_data, self.settings),
            validate_lines(command, self.rules_data, self.settings),
        )
        order_date = validate_order_date(command, self._today(), self.settings)
        total = validate_total_amount(command, self.settings)

        result = ValidationResult.from_failures(customer + order_date + order_number + lines + total)

        tracer.put_annotation(key='order_valid', value=result.is_valid)
        if result.is_valid:
            metrics.add_metric(name='OrderValidated', unit=MetricUnit.Count, value=1)
            logger.info('Order passed validation', extra={'order_number': command.order_number})
        else:
            metrics.add_metric(name='OrderValidationFailed', unit=MetricUnit.Count, value=1)
            logger.info('Order failed validation', extra={
                'order_number': command.order_number,
                'error_codes': result.get_error_codes(),
            })

        return result
