"""
Orders API Lambda Function - Entry point for the orders web API.

Delegates to the orders handler, which routes API Gateway requests to the
order service and the shared order validator.
"""

import os
import sys
from typing import Any, Dict

# Add the order_rules package to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aws_lambda_powertools.utilities.typing import LambdaContext
from order_rules.handlers.orders_handler import lambda_handler as orders_handler


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function entry point for the orders API.

    Args:
        event: Lambda event payload (API Gateway event)
        context: Lambda context object

    Returns:
        API Gateway response dictionary
    """
    return orders_handler(event, context)
