"""
Order Plugin Lambda Function - Entry point for the Dataverse webhook.

Dataverse calls this function synchronously on Create of new_order; a 400
answer cancels the create and shows the validation messages to the user.
"""

import os
import sys
from typing import Any, Dict

# Add the order_rules package to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aws_lambda_powertools.utilities.typing import LambdaContext
from order_rules.handlers.plugin_handler import lambda_handler as plugin_handler


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    return plugin_handler(event, context)
