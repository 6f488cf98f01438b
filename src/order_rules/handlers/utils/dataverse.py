"""
Per-invocation Dataverse wiring for the Lambda hosts.

The token provider lives at module scope so warm invocations reuse the
access token; the httpx client is opened and closed within each invocation.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from order_rules.dal.dataverse_client import ClientCredentialsTokenProvider, DataverseClient, create_http_client
from order_rules.handlers.models.env_vars import OrderRulesEnvVars
from order_rules.security.secrets_manager import get_dataverse_credentials

_token_provider: Optional[ClientCredentialsTokenProvider] = None


def get_token_provider(env: OrderRulesEnvVars) -> ClientCredentialsTokenProvider:
    global _token_provider

    if _token_provider is None:
        _token_provider = ClientCredentialsTokenProvider(
            credentials_loader=lambda: get_dataverse_credentials(env.DATAVERSE_CREDENTIALS_SECRET_NAME, env.AWS_REGION),
            resource_url=str(env.DATAVERSE_URL),
        )
    return _token_provider


def reset_token_provider() -> None:
    global _token_provider
    _token_provider = None


@asynccontextmanager
async def open_dataverse_client(env: OrderRulesEnvVars) -> AsyncIterator[DataverseClient]:
    """Open an authenticated Dataverse client for the current invocation."""
    async with create_http_client(env) as http:
        yield DataverseClient(http, get_token_provider(env))
