"""
Orders Handler - Lambda function for the orders web API.

Routes on the shared API Gateway resolver. Each request opens a Dataverse
client, builds the validator over the API rules data and hands off to
OrderService.
"""

import asyncio
import functools
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Dict, TypeVar
from uuid import UUID

from aws_lambda_powertools.event_handler import Response
from aws_lambda_powertools.event_handler.openapi.exceptions import RequestValidationError
from aws_lambda_powertools.event_handler.openapi.params import Query
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from order_rules.dal import get_api_rules_data
from order_rules.dal.dataverse_client import DataverseServiceError
from order_rules.handlers.models.env_vars import get_handler_env_vars
from order_rules.handlers.utils.dataverse import open_dataverse_client
from order_rules.handlers.utils.dynamic_configuration import get_rules_configuration, is_maintenance_mode
from order_rules.handlers.utils.errors import (
    OrderRulesError,
    create_api_response,
    format_error_response,
    get_http_status_code,
    log_error_metrics,
)
from order_rules.handlers.utils.observability import logger, metrics, tracer
from order_rules.handlers.utils.rest_api_resolver import HEALTH_PATH, ORDERS_PATH, app
from order_rules.logic.order_service import OrderService, OrderValidationFailedError
from order_rules.logic.validator import CreateOrderValidator
from order_rules.models.input import CreateOrderRequest
from order_rules.models.output import ApiErrorResponse, HealthCheckOutput
from order_rules.models.validation import ValidationResult, to_guid
from order_rules.security.secrets_manager import SecretDecryptionError, SecretNotFoundError

T = TypeVar('T')

SERVICE_NAME = 'Orders API'


def handle_service_errors(func):
    """Decorator to handle service errors and convert to HTTP responses."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except OrderRulesError as e:
            log_error_metrics(e)
            return create_api_response(
                status_code=get_http_status_code(e),
                body=format_error_response(e),
                headers={'Retry-After': str(e.retry_after)} if e.retry_after else None,
            )
        except Exception as e:
            logger.exception('Unexpected error in handler', extra={
                'error': str(e),
                'function_name': func.__name__,
            })
            metrics.add_metric(name='UnexpectedError', unit=MetricUnit.Count, value=1)

            unexpected_error = OrderRulesError('An unexpected error occurred')
            return create_api_response(status_code=500, body=format_error_response(unexpected_error))

    return wrapper


def _request_id() -> str:
    return app.current_event.request_context.request_id


def _run_with_service(operation: Callable[[OrderService], Awaitable[T]]) -> T:
    """Run an async service operation with a Dataverse client scoped to this request."""
    env = get_handler_env_vars()
    configuration = get_rules_configuration(env)

    async def _run() -> T:
        async with open_dataverse_client(env) as client:
            rules_data = get_api_rules_data(client, env, configuration.lookup_cache_ttl_seconds)
            validator = CreateOrderValidator(rules_data, configuration.rules)
            return await operation(OrderService(client, validator, env.ORDERS_ENTITY_SET))

    return asyncio.run(_run())


def _validation_problem(result: ValidationResult) -> Response:
    problem = ApiErrorResponse(
        type='ValidationError',
        title='Order validation failed',
        status=400,
        errors=result.to_error_dictionary(),
        trace_id=_request_id(),
    )
    return create_api_response(status_code=400, body=problem.model_dump_json(by_alias=True, exclude_none=True))


def _not_found(detail: str) -> Response:
    problem = ApiErrorResponse(type='NotFound', title='Order not found', status=404, detail=detail, trace_id=_request_id())
    return create_api_response(status_code=404, body=problem.model_dump_json(by_alias=True, exclude_none=True))


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(ex: RequestValidationError) -> Response:
    """Report malformed requests as 400 with errors grouped by field."""
    errors: Dict[str, list[str]] = {}
    for error in ex.errors():
        location = [str(part) for part in error.get('loc', ())]
        # Drop the 'body'/'query'/'path' prefix
        field = '.'.join(location[1:]) if len(location) > 1 else ''.join(location)
        errors.setdefault(field, []).append(error.get('msg', 'Invalid value'))

    logger.info('Request validation failed', extra={'validation_errors': errors})
    metrics.add_metric(name='RequestValidationError', unit=MetricUnit.Count, value=1)

    problem = ApiErrorResponse(
        type='ValidationError',
        title='Request validation failed',
        status=400,
        errors=errors,
        trace_id=_request_id(),
    )
    return create_api_response(status_code=400, body=problem.model_dump_json(by_alias=True, exclude_none=True))


@app.get(f'{ORDERS_PATH}/health')
def orders_health():
    env = get_handler_env_vars()
    output = HealthCheckOutput(
        status='Healthy',
        timestamp=datetime.now(timezone.utc),
        service=SERVICE_NAME,
        version=env.APP_VERSION,
        environment=env.ENVIRONMENT,
    )
    return create_api_response(status_code=200, body=output.to_json())


@app.get(HEALTH_PATH)
@tracer.capture_method
def dataverse_health():
    """Check connectivity to Dataverse with WhoAmI."""
    env = get_handler_env_vars()

    async def _who_am_i() -> dict[str, Any]:
        async with open_dataverse_client(env) as client:
            return await client.who_am_i()

    try:
        who_am_i = asyncio.run(_who_am_i())
    except (DataverseServiceError, SecretNotFoundError, SecretDecryptionError) as e:
        logger.warning('Dataverse health check failed', extra={'error': str(e)})
        output = HealthCheckOutput(
            status='Unhealthy',
            timestamp=datetime.now(timezone.utc),
            service=SERVICE_NAME,
            version=env.APP_VERSION,
            environment=env.ENVIRONMENT,
            checks={'dataverse': {'status': 'Unhealthy', 'error': str(e)}},
        )
        return create_api_response(status_code=503, body=output.to_json())

    output = HealthCheckOutput(
        status='Healthy',
        timestamp=datetime.now(timezone.utc),
        service=SERVICE_NAME,
        version=env.APP_VERSION,
        environment=env.ENVIRONMENT,
        checks={'dataverse': {'status': 'Healthy', 'organization_id': who_am_i.get('OrganizationId')}},
    )
    return create_api_response(status_code=200, body=output.to_json())


@app.post(f'{ORDERS_PATH}/validate')
@tracer.capture_method
@handle_service_errors
def validate_order(request: CreateOrderRequest):
    """Run the order rules without creating anything."""
    command = request.to_command()
    result = _run_with_service(lambda service: service.validate_order(command))
    return create_api_response(status_code=200, body=result.model_dump_json())


@app.post(ORDERS_PATH)
@tracer.capture_method
@handle_service_errors
def create_order(request: CreateOrderRequest):
    """Validate and create an order."""
    if is_maintenance_mode(get_handler_env_vars()):
        logger.warning('Order creation rejected, maintenance mode is on')
        problem = ApiErrorResponse(
            type='ServiceUnavailable',
            title='Order creation is temporarily disabled',
            status=503,
            trace_id=_request_id(),
        )
        return create_api_response(status_code=503, body=problem.model_dump_json(by_alias=True, exclude_none=True))

    command = request.to_command()
    try:
        created = _run_with_service(lambda service: service.create_order(command))
    except OrderValidationFailedError as e:
        return _validation_problem(e.result)

    return create_api_response(
        status_code=201,
        body=created.to_json(),
        headers={'Location': f'{ORDERS_PATH}/{created.order_id}'},
    )


@app.get(f'{ORDERS_PATH}/by-number/<order_number>')
@tracer.capture_method
@handle_service_errors
def get_order_by_number(order_number: str):
    order = _run_with_service(lambda service: service.get_order_by_number(order_number))
    if order is None:
        return _not_found(f"Order with number '{order_number}' was not found")
    return create_api_response(status_code=200, body=order.to_json())


@app.get(f'{ORDERS_PATH}/customer/<customer_id>')
@tracer.capture_method
@handle_service_errors
def get_orders_by_customer(
    customer_id: str,
    page_size: Annotated[int, Query(alias='pageSize', ge=1, le=100)] = 50,
    page_number: Annotated[int, Query(alias='pageNumber', ge=1)] = 1,
):
    page = _run_with_service(lambda service: service.get_orders_by_customer(customer_id, page_size, page_number))
    return create_api_response(status_code=200, body=page.to_json())


@app.get(f'{ORDERS_PATH}/<order_id>')
@tracer.capture_method
@handle_service_errors
def get_order(order_id: str):
    order_guid: UUID | None = to_guid(order_id)
    if order_guid is None:
        return _not_found(f"Order with ID '{order_id}' was not found")

    order = _run_with_service(lambda service: service.get_order_by_id(order_guid))
    if order is None:
        return _not_found(f"Order with ID '{order_id}' was not found")
    return create_api_response(status_code=200, body=order.to_json())


@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
@metrics.log_metrics(capture_cold_start_metric=True)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Main Lambda handler function.

    Args:
        event: API Gateway REST proxy event
        context: Lambda context object

    Returns:
        API Gateway response
    """
    metrics.add_metric(name='RequestCount', unit=MetricUnit.Count, value=1)
    tracer.put_annotation(key='service', value='orders-api')
    return app.resolve(event, context)
