"""
Plugin Handler - Dataverse webhook for order creation.

Registered as a synchronous webhook step on Create of new_order. Dataverse
posts the RemoteExecutionContext; a non-2xx answer cancels the operation and
surfaces the response message to the user, the webhook equivalent of
throwing InvalidPluginExecutionException from an in-process plugin.
"""

import asyncio
import json
from typing import Any, Dict, Optional

from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes import APIGatewayProxyEvent, event_source
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError as PydanticValidationError

from order_rules.dal import get_plugin_rules_data
from order_rules.handlers.models.env_vars import OrderRulesEnvVars, get_handler_env_vars
from order_rules.handlers.utils.dataverse import open_dataverse_client
from order_rules.handlers.utils.dynamic_configuration import get_rules_configuration
from order_rules.handlers.utils.errors import OrderRejectedError, OrderRulesError, log_error_metrics
from order_rules.handlers.utils.observability import logger, metrics, tracer
from order_rules.logic.entity_mapper import (
    ORDER_ENTITY,
    EntityMappingError,
    has_required_order_fields,
    map_to_create_order_command,
)
from order_rules.logic.validator import CreateOrderValidator
from order_rules.models.command import CreateOrderCommand
from order_rules.models.plugin_context import DataverseEntity, RemoteExecutionContext
from order_rules.models.validation import ValidationResult

CREATE_MESSAGE = 'Create'


class InvalidPluginExecutionError(OrderRejectedError):
    """Cancels the platform operation with a message shown to the user."""

    def __init__(self, message: str, result: Optional[ValidationResult] = None):
        super().__init__(message, 'ORDER_VALIDATION_FAILED')
        self.result = result


def get_order_target(plugin_context: RemoteExecutionContext) -> Optional[DataverseEntity]:
    """The order entity to validate, or None when this execution should be skipped."""
    if plugin_context.message_name != CREATE_MESSAGE:
        logger.info(f'Skipping non-Create message: {plugin_context.message_name}')
        return None

    target = plugin_context.get_target()
    if target is None:
        logger.info('No Target entity found in InputParameters')
        return None

    if target.logical_name != ORDER_ENTITY:
        logger.info(f'Skipping validation for entity: {target.logical_name}')
        return None

    if not has_required_order_fields(target):
        logger.info('Entity missing required fields for validation')
        return None

    return target


async def validate_command(command: CreateOrderCommand, env: OrderRulesEnvVars) -> ValidationResult:
    configuration = get_rules_configuration(env)
    async with open_dataverse_client(env) as client:
        rules_data = get_plugin_rules_data(client, env, configuration.lookup_cache_ttl_seconds)
        return await CreateOrderValidator(rules_data, configuration.rules).validate(command)


@tracer.capture_method
def execute(plugin_context: RemoteExecutionContext, env: OrderRulesEnvVars) -> str:
    """
    Run the order rules for one plugin execution.

    Returns:
        'skipped' when the execution is not an order Create, 'valid' otherwise

    Raises:
        InvalidPluginExecutionError: If the order breaks any rule or cannot be mapped
    """
    target = get_order_target(plugin_context)
    if target is None:
        return 'skipped'

    logger.info(f'Processing {plugin_context.message_name} for entity: {target.logical_name}')
    try:
        command = map_to_create_order_command(target)
    except EntityMappingError as e:
        raise InvalidPluginExecutionError(f'Failed to map entity to CreateOrderCommand: {e.message}') from e

    result = asyncio.run(validate_command(command, env))
    if not result.is_valid:
        errors = result.get_errors_as_string()
        logger.warning('Order rejected', extra={'order_number': command.order_number, 'errors': errors})
        metrics.add_metric(name='PluginValidationRejected', unit=MetricUnit.Count, value=1)
        raise InvalidPluginExecutionError(f'Order validation failed: {errors}', result)

    return 'valid'


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body),
    }


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
@event_source(data_class=APIGatewayProxyEvent)
def lambda_handler(event: APIGatewayProxyEvent, context: LambdaContext) -> Dict[str, Any]:
    """
    Webhook entry point.

    Args:
        event: API Gateway proxy event whose body is the RemoteExecutionContext
        context: Lambda context object

    Returns:
        200 when the order passes or is not ours, 400 with the messages when it does not
    """
    try:
        plugin_context = RemoteExecutionContext.model_validate_json(event.decoded_body or '{}')
    except PydanticValidationError as e:
        logger.error('Malformed execution context', extra={'error_count': e.error_count()})
        return _response(400, {'message': 'Malformed execution context.'})

    logger.append_keys(dataverse_correlation_id=plugin_context.correlation_id)
    tracer.put_annotation(key='message_name', value=plugin_context.message_name)

    try:
        outcome = execute(plugin_context, get_handler_env_vars())
    except InvalidPluginExecutionError as e:
        body: Dict[str, Any] = {'message': e.message}
        if e.result is not None:
            body['errors'] = [error.model_dump() for error in e.result.errors]
        return _response(400, body)
    except OrderRulesError as e:
        log_error_metrics(e)
        return _response(500, {'message': e.user_message, 'errorId': e.error_id})

    return _response(200, {'status': outcome})
