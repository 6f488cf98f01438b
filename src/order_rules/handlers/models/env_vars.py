"""
Environment variable models for type-safe configuration.

This module defines Pydantic models for environment variables used by both
Lambda hosts, parsed with aws-lambda-env-modeler.
"""

from typing import Annotated

from aws_lambda_env_modeler import BaseModel, get_environment_variables
from pydantic import Field, HttpUrl


class OrderRulesEnvVars(BaseModel):
    """Environment variables shared by the web API and the plugin webhook."""

    # Dataverse environment, e.g. https://contoso.crm.dynamics.com
    DATAVERSE_URL: Annotated[HttpUrl, Field(
        description='Base URL of the Dataverse environment'
    )]

    DATAVERSE_API_VERSION: Annotated[str, Field(
        default='v9.2',
        description='Dataverse Web API version',
        pattern=r'^v\d+\.\d+$'
    )] = 'v9.2'

    # Secrets Manager secret holding tenant_id, client_id and client_secret
    DATAVERSE_CREDENTIALS_SECRET_NAME: Annotated[str, Field(
        description='Secrets Manager secret with the Dataverse app registration',
        min_length=1
    )]

    DATAVERSE_TIMEOUT_SECONDS: Annotated[int, Field(
        default=30,
        description='HTTP timeout for Dataverse calls in seconds',
        ge=1,
        le=300
    )] = 30

    # State codes considered active
    CUSTOMER_ACTIVE_STATECODE: Annotated[int, Field(
        default=0,
        description='statecode of an active account'
    )] = 0

    PRODUCT_ACTIVE_STATECODE: Annotated[int, Field(
        default=1,
        description='statecode of an active product'
    )] = 1

    ORDERS_ENTITY_SET: Annotated[str, Field(
        default='new_orders',
        description='Entity set name of the order table'
    )] = 'new_orders'

    AWS_REGION: Annotated[str, Field(
        default='us-east-1',
        description='AWS region for service deployment'
    )] = 'us-east-1'

    ENVIRONMENT: Annotated[str, Field(
        default='dev',
        description='Deployment environment name',
        pattern=r'^(dev|staging|prod)$'
    )] = 'dev'

    APP_VERSION: Annotated[str, Field(
        default='1.0.0',
        description='Application version string'
    )] = '1.0.0'

    POWERTOOLS_SERVICE_NAME: Annotated[str, Field(
        default='order-rules',
        description='Service name for AWS Powertools'
    )] = 'order-rules'

    LOG_LEVEL: Annotated[str, Field(
        default='INFO',
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'

    # AppConfig location of the rule thresholds
    CONFIGURATION_APP: Annotated[str, Field(
        default='order-rules',
        description='AWS AppConfig application name'
    )] = 'order-rules'

    CONFIGURATION_ENV: Annotated[str, Field(
        default='dev',
        description='AWS AppConfig environment name'
    )] = 'dev'

    CONFIGURATION_NAME: Annotated[str, Field(
        default='rules',
        description='AWS AppConfig configuration profile with rule thresholds'
    )] = 'rules'

    CONFIGURATION_MAX_AGE_MINUTES: Annotated[int, Field(
        default=5,
        description='Maximum age in minutes for cached configuration',
        ge=1,
        le=60
    )] = 5

    @property
    def dataverse_api_url(self) -> str:
        """Base URL of the Web API endpoint, ending with a slash."""
        return f"{str(self.DATAVERSE_URL).rstrip('/')}/api/data/{self.DATAVERSE_API_VERSION}/"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == 'prod'


def get_handler_env_vars() -> OrderRulesEnvVars:
    """
    Get typed environment variables for Lambda handlers.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=OrderRulesEnvVars)
