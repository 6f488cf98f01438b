"""
AWS Secrets Manager integration.

Reads the Dataverse app registration credentials, caching them for the life
of the Lambda execution environment.
"""

import json
import time
from typing import Any, Dict, Optional, Union

import boto3
from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError
from cachetools import TTLCache
from pydantic import BaseModel, Field, ValidationError

from order_rules.handlers.utils.observability import logger, metrics, tracer


class SecretNotFoundError(Exception):
    """Exception raised when secret is not found."""
    pass


class SecretDecryptionError(Exception):
    """Exception raised when secret cannot be read or parsed."""
    pass


class DataverseCredentials(BaseModel):
    """Client credentials of the Entra ID app registration used for Dataverse."""

    tenant_id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1, repr=False)


class AWSSecretsManager:
    """AWS Secrets Manager reader with a TTL cache."""

    def __init__(
        self,
        region_name: str = "us-east-1",
        cache_ttl_seconds: int = 300,
        max_cache_size: int = 20,
        endpoint_url: Optional[str] = None,
    ):
        self.region_name = region_name
        self.client = boto3.client('secretsmanager', region_name=region_name, endpoint_url=endpoint_url)
        self._cache: TTLCache = TTLCache(maxsize=max_cache_size, ttl=cache_ttl_seconds)

        logger.debug("AWS Secrets Manager initialized", extra={"region": region_name, "cache_ttl": cache_ttl_seconds})

    @tracer.capture_method
    def get_secret(self, secret_name: str) -> Union[str, Dict[str, Any]]:
        """
        Get secret value from AWS Secrets Manager.

        Args:
            secret_name: Name or ARN of the secret

        Returns:
            Secret value (string or parsed JSON dict)

        Raises:
            SecretNotFoundError: If secret doesn't exist
            SecretDecryptionError: If secret cannot be retrieved
        """
        if secret_name in self._cache:
            metrics.add_metric(name="SecretCacheHit", unit=MetricUnit.Count, value=1)
            return self._cache[secret_name]

        start_time = time.time()
        try:
            response = self.client.get_secret_value(SecretId=secret_name)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == 'ResourceNotFoundException':
                logger.error(f"Secret not found: {secret_name}")
                metrics.add_metric(name="SecretNotFound", unit=MetricUnit.Count, value=1)
                raise SecretNotFoundError(f"Secret '{secret_name}' not found") from e

            logger.error(f"Failed to retrieve secret '{secret_name}': {error_code}")
            metrics.add_metric(name="SecretRetrievalError", unit=MetricUnit.Count, value=1)
            raise SecretDecryptionError(f"Failed to retrieve secret: {error_code}") from e
        except BotoCoreError as e:
            logger.error(f"Unexpected error retrieving secret '{secret_name}': {str(e)}")
            metrics.add_metric(name="SecretRetrievalError", unit=MetricUnit.Count, value=1)
            raise SecretDecryptionError(f"Unexpected error: {str(e)}") from e

        secret_value = self._parse_secret_value(response)
        self._cache[secret_name] = secret_value

        logger.info(
            "Secret retrieved successfully",
            extra={
                "secret_name": secret_name,
                "version_id": response.get("VersionId"),
                "duration_ms": (time.time() - start_time) * 1000,
            }
        )
        return secret_value

    def clear_cache(self) -> None:
        self._cache.clear()

    def _parse_secret_value(self, response: Dict[str, Any]) -> Union[str, Dict[str, Any]]:
        if 'SecretString' not in response:
            raise SecretDecryptionError("No secret string found in response")

        secret_string = response['SecretString']
        try:
            return json.loads(secret_string)
        except (json.JSONDecodeError, TypeError):
            return secret_string


# Global secrets manager instance (lazily initialized)
_secrets_manager: Optional[AWSSecretsManager] = None


def get_secrets_manager(region_name: str = "us-east-1") -> AWSSecretsManager:
    """Get or create the global secrets manager instance."""
    global _secrets_manager

    if _secrets_manager is None or _secrets_manager.region_name != region_name:
        _secrets_manager = AWSSecretsManager(region_name=region_name)

    return _secrets_manager


def get_dataverse_credentials(secret_name: str, region_name: str = "us-east-1") -> DataverseCredentials:
    """
    Get the Dataverse client credentials from secrets manager.

    Raises:
        SecretNotFoundError: If secret doesn't exist
        SecretDecryptionError: If secret format is invalid
    """
    secret_value = get_secrets_manager(region_name).get_secret(secret_name)

    if not isinstance(secret_value, dict):
        raise SecretDecryptionError("Dataverse secret must be a JSON object")

    try:
        return DataverseCredentials.model_validate(secret_value)
    except ValidationError as e:
        missing = [str(err['loc'][0]) for err in e.errors()]
        raise SecretDecryptionError(f"Dataverse secret missing required fields: {missing}") from e
