"""
Errors the order hosts answer with a structured response.

An OrderRejectedError means the order itself cannot be accepted; an
UpstreamServiceError means Dataverse (or the credentials needed to reach it)
failed. The web API maps them to HTTP status codes, the plugin webhook answers
400 for rejections and 500 for everything else.
"""

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from aws_lambda_powertools.event_handler import Response, content_types
from aws_lambda_powertools.metrics import MetricUnit

from order_rules.handlers.utils.observability import logger, metrics, tracer


class ErrorCategory(str, Enum):
    """Metric dimension of an error."""
    ORDER = "ORDER"
    UPSTREAM = "UPSTREAM"
    INTERNAL = "INTERNAL"


class OrderRulesError(Exception):
    """Base class of the errors raised by the order hosts."""

    category = ErrorCategory.INTERNAL
    http_status = 500

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_SERVER_ERROR",
        user_message: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.user_message = user_message or "An unexpected error occurred."
        self.retry_after = retry_after
        self.error_id = str(uuid.uuid4())


class OrderRejectedError(OrderRulesError):
    """The order cannot be accepted as submitted; the message is safe to show."""

    category = ErrorCategory.ORDER
    http_status = 400

    def __init__(self, message: str, error_code: str):
        super().__init__(message, error_code, user_message=message)


class UpstreamServiceError(OrderRulesError):
    """A call to Dataverse failed."""

    category = ErrorCategory.UPSTREAM
    http_status = 502

    def __init__(self, message: str, error_code: str, retry_after: Optional[int] = None):
        super().__init__(
            message,
            error_code,
            user_message="Dataverse is temporarily unavailable. Please try again later.",
            retry_after=retry_after,
        )


# Codes whose status differs from their class default
_STATUS_BY_ERROR_CODE = {
    "DATAVERSE_RECORD_NOT_FOUND": 404,
    "DATAVERSE_UNAVAILABLE": 503,
}


def get_http_status_code(error: OrderRulesError) -> int:
    return _STATUS_BY_ERROR_CODE.get(error.error_code, error.http_status)


@tracer.capture_method
def log_error_metrics(error: OrderRulesError) -> None:
    """Count the error by category and log it with its id."""
    metrics.add_metric(name="ErrorCount", unit=MetricUnit.Count, value=1)
    metrics.add_metric(name=f"Error{error.category.value.title()}Count", unit=MetricUnit.Count, value=1)
    tracer.put_annotation("error_code", error.error_code)

    log = logger.warning if error.category == ErrorCategory.ORDER else logger.error
    log(
        "Order rules error",
        extra={
            "error_id": error.error_id,
            "error_code": error.error_code,
            "error_category": error.category.value,
            "error_message": error.message,
        },
    )


def format_error_response(error: OrderRulesError) -> Dict[str, Any]:
    """Body of an error response; only the user message leaves the service."""
    response: Dict[str, Any] = {
        "error": {
            "code": error.error_code,
            "message": error.user_message,
            "error_id": error.error_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }
    if error.retry_after:
        response["retry_after"] = error.retry_after
    return response


def create_api_response(
    status_code: int,
    body: Any,
    headers: Optional[Dict[str, str]] = None,
) -> Response:
    """JSON response with a request id header."""
    response_headers = {"X-Request-ID": str(uuid.uuid4())}
    if headers:
        response_headers.update(headers)

    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=body if isinstance(body, str) else json.dumps(body, default=str),
        headers=response_headers,
    )
