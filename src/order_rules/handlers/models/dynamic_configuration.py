"""
Dynamic configuration models for AWS AppConfig.

The rule thresholds can be tuned per environment without a deployment by
publishing a JSON document to the AppConfig profile named by the
CONFIGURATION_NAME environment variable.
"""

from typing import Annotated

from pydantic import BaseModel, Field

from order_rules.models.settings import OrderRulesSettings


class RulesConfiguration(BaseModel):
    """Root of the AppConfig document."""

    rules: Annotated[OrderRulesSettings, Field(
        default_factory=OrderRulesSettings,
        description='Thresholds applied by the order validator'
    )]

    lookup_cache_ttl_seconds: Annotated[int, Field(
        default=60,
        description='How long a rules-data answer is reused within an invocation',
        ge=0,
        le=3600
    )] = 60

    maintenance_mode: Annotated[bool, Field(
        default=False,
        description='Reject order creation while Dataverse maintenance is in progress'
    )] = False
