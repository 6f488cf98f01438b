"""
Dynamic configuration utility for AWS AppConfig integration.

Rule thresholds are fetched from AppConfig and cached. When the document
cannot be fetched or parsed, the last document that loaded is used, or the
built-in defaults before any has. The fallback is not cached, so the next
request tries AppConfig again.
"""

import json
from typing import Type, TypeVar

from aws_lambda_powertools.utilities.parameters import get_app_config
from cachetools import TTLCache
from pydantic import BaseModel, ValidationError

from order_rules.handlers.models.dynamic_configuration import RulesConfiguration
from order_rules.handlers.models.env_vars import OrderRulesEnvVars
from order_rules.handlers.utils.observability import logger

T = TypeVar('T', bound=BaseModel)

# Global cache for configuration data
_config_cache: TTLCache = TTLCache(maxsize=10, ttl=300)  # 5-minute TTL

# Last successfully parsed document per model, kept past the TTL
_last_known_good: dict[str, BaseModel] = {}


def parse_configuration(model: Type[T], env: OrderRulesEnvVars, force_refresh: bool = False) -> T:
    """
    Parse dynamic configuration from AWS AppConfig using Pydantic model.

    Args:
        model: Pydantic model class to parse configuration into
        env: Environment variables naming the AppConfig application, environment and profile
        force_refresh: Whether to bypass the configuration cache

    Returns:
        Parsed configuration; on failure the last good document or the model defaults
    """
    cache_key = f'config_{model.__name__}'

    if not force_refresh and cache_key in _config_cache:
        logger.debug(f'Using cached configuration for {model.__name__}')
        return _config_cache[cache_key]

    try:
        config_data = get_app_config(
            name=env.CONFIGURATION_NAME,
            environment=env.CONFIGURATION_ENV,
            application=env.CONFIGURATION_APP,
            max_age=env.CONFIGURATION_MAX_AGE_MINUTES * 60,
            force_fetch=force_refresh,
        )

        if isinstance(config_data, (bytes, str)):
            config_data = json.loads(config_data)

        parsed_config = model.model_validate(config_data)
        _config_cache[cache_key] = parsed_config
        _last_known_good[cache_key] = parsed_config
        logger.info(f'Successfully parsed configuration for {model.__name__}')
        return parsed_config

    except ValidationError as e:
        logger.error(f'Configuration validation error for {model.__name__}: {e}')
    except Exception as e:
        logger.error(f'Failed to fetch configuration from AppConfig: {e}')

    if cache_key in _last_known_good:
        logger.warning(f'Using last known configuration for {model.__name__}')
        return _last_known_good[cache_key]  # type: ignore[return-value]
    return model()


def get_rules_configuration(env: OrderRulesEnvVars) -> RulesConfiguration:
    return parse_configuration(RulesConfiguration, env)


def is_maintenance_mode(env: OrderRulesEnvVars) -> bool:
    return get_rules_configuration(env).maintenance_mode


def refresh_configuration() -> None:
    """
    Force refresh of all cached configuration data.

    The next configuration request fetches fresh data from AppConfig.
    """
    _config_cache.clear()
    logger.info('Configuration cache cleared, next request will fetch fresh data')
