"""
Dataverse Web API client.

A thin async client over the Dataverse OData v4 endpoint, built on httpx.
It authenticates with an Entra ID app registration (client credentials) and
turns platform failures into the service error taxonomy.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import urlparse
from uuid import UUID

import httpx

from order_rules.handlers.models.env_vars import OrderRulesEnvVars
from order_rules.handlers.utils.errors import UpstreamServiceError
from order_rules.handlers.utils.observability import logger, tracer
from order_rules.security.secrets_manager import DataverseCredentials

# Platform error code returned when a record does not exist
RECORD_NOT_FOUND_CODE = '0x80040217'

# Service protection limits (429) and platform overload (503)
THROTTLED_STATUS_CODES = (429, 503)

ODATA_HEADERS = {
    'Accept': 'application/json',
    'OData-Version': '4.0',
    'OData-MaxVersion': '4.0',
}

FORMATTED_VALUES = 'odata.include-annotations="OData.Community.Display.V1.FormattedValue"'
FORMATTED_VALUE_SUFFIX = '@OData.Community.Display.V1.FormattedValue'

# Edm.Decimal values serialized as JSON strings
JSON_IEEE754_COMPATIBLE = 'application/json; IEEE754Compatible=true'

DEFAULT_AUTHORITY = 'https://login.microsoftonline.com'


class DataverseServiceError(UpstreamServiceError):
    """Raised when a Dataverse call fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        platform_code: Optional[str] = None,
        error_code: str = 'DATAVERSE_ERROR',
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, error_code, retry_after=retry_after)
        self.status_code = status_code
        self.platform_code = platform_code


class DataverseRecordNotFoundError(DataverseServiceError):
    """Raised when the requested record does not exist."""

    def __init__(self, message: str, status_code: Optional[int] = 404, platform_code: Optional[str] = None):
        super().__init__(message, status_code=status_code, platform_code=platform_code, error_code='DATAVERSE_RECORD_NOT_FOUND')


@dataclass
class EntityCollection:
    """Records returned by a query, with the total count when it was requested."""

    entities: list[dict[str, Any]] = field(default_factory=list)
    total_count: Optional[int] = None


class ClientCredentialsTokenProvider:
    """
    OAuth2 client-credentials token source for Dataverse.

    Tokens are cached on the instance until shortly before they expire, so a
    provider created at module scope is reused by warm invocations.
    """

    def __init__(
        self,
        credentials_loader: Callable[[], DataverseCredentials],
        resource_url: str,
        authority: str = DEFAULT_AUTHORITY,
        refresh_margin_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self._credentials_loader = credentials_loader
        self._scope = f"{resource_url.rstrip('/')}/.default"
        self._authority = authority.rstrip('/')
        self._refresh_margin_seconds = refresh_margin_seconds
        self._clock = clock
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def has_valid_token(self) -> bool:
        return self._access_token is not None and self._clock() < self._expires_at - self._refresh_margin_seconds

    def invalidate(self) -> None:
        self._access_token = None
        self._expires_at = 0.0

    async def get_token(self, http: httpx.AsyncClient) -> str:
        if self.has_valid_token:
            return self._access_token  # type: ignore[return-value]

        credentials = self._credentials_loader()
        token_url = f'{self._authority}/{credentials.tenant_id}/oauth2/v2.0/token'
        try:
            response = await http.post(
                token_url,
                data={
                    'grant_type': 'client_credentials',
                    'client_id': credentials.client_id,
                    'client_secret': credentials.client_secret,
                    'scope': self._scope,
                },
            )
        except httpx.HTTPError as exc:
            raise DataverseServiceError(f'Token request failed: {exc}', error_code='DATAVERSE_UNAVAILABLE') from exc

        if not response.is_success:
            logger.error('Token request rejected', extra={'status_code': response.status_code})
            raise DataverseServiceError('Token request rejected by identity provider', status_code=response.status_code)

        payload = response.json()
        self._access_token = payload['access_token']
        self._expires_at = self._clock() + int(payload.get('expires_in', 3600))
        logger.debug('Acquired Dataverse access token', extra={'expires_in': payload.get('expires_in')})
        return self._access_token


def quote_literal(value: str) -> str:
    """Render a string as an OData literal, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def formatted_value(record: dict[str, Any], attribute: str) -> Optional[str]:
    """Display name the platform attached to an attribute, if any."""
    return record.get(f'{attribute}{FORMATTED_VALUE_SUFFIX}')


class DataverseClient:
    """Async access to Dataverse tables through the Web API."""

    def __init__(self, http: httpx.AsyncClient, token_provider: Optional[ClientCredentialsTokenProvider] = None):
        self._http = http
        self._token_provider = token_provider

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        request_headers = dict(headers or {})
        if self._token_provider is not None:
            request_headers['Authorization'] = f'Bearer {await self._token_provider.get_token(self._http)}'

        try:
            response = await self._http.request(method, url, params=params, json=json, headers=request_headers)
        except httpx.TimeoutException as exc:
            raise DataverseServiceError(f'Dataverse request timed out: {method} {url}', error_code='DATAVERSE_UNAVAILABLE') from exc
        except httpx.HTTPError as exc:
            raise DataverseServiceError(f'Dataverse request failed: {method} {url}: {exc}', error_code='DATAVERSE_UNAVAILABLE') from exc

        if response.is_success:
            return response

        if response.status_code == 401 and self._token_provider is not None:
            self._token_provider.invalidate()

        platform_code, message = self._parse_error(response)
        if response.status_code == 404 or platform_code == RECORD_NOT_FOUND_CODE:
            raise DataverseRecordNotFoundError(message, status_code=response.status_code, platform_code=platform_code)

        logger.warning(
            'Dataverse request failed',
            extra={'method': method, 'url': url, 'status_code': response.status_code, 'platform_code': platform_code},
        )
        if response.status_code in THROTTLED_STATUS_CODES:
            raise DataverseServiceError(
                message,
                status_code=response.status_code,
                platform_code=platform_code,
                error_code='DATAVERSE_UNAVAILABLE',
                retry_after=self._parse_retry_after(response),
            )
        raise DataverseServiceError(message, status_code=response.status_code, platform_code=platform_code)

    @staticmethod
    def _parse_retry_after(response: httpx.Response) -> Optional[int]:
        # Service protection limits send Retry-After in seconds
        value = response.headers.get('Retry-After', '')
        return int(value) if value.isdigit() else None

    @staticmethod
    def _parse_error(response: httpx.Response) -> tuple[Optional[str], str]:
        try:
            error = response.json().get('error', {})
        except ValueError:
            return None, f'Dataverse returned HTTP {response.status_code}'
        return error.get('code'), error.get('message') or f'Dataverse returned HTTP {response.status_code}'

    @tracer.capture_method
    async def retrieve(self, entity_set: str, record_id: UUID | str, columns: Optional[list[str]] = None) -> dict[str, Any]:
        """
        Retrieve a single record by primary key.

        Raises:
            DataverseRecordNotFoundError: If the record does not exist
            DataverseServiceError: On any other failure
        """
        params = {'$select': ','.join(columns)} if columns else None
        response = await self._request('GET', f'{entity_set}({record_id})', params=params, headers={'Prefer': FORMATTED_VALUES})
        return response.json()

    @tracer.capture_method
    async def retrieve_multiple(
        self,
        entity_set: str,
        *,
        filter: Optional[str] = None,
        columns: Optional[list[str]] = None,
        top: Optional[int] = None,
        order_by: Optional[str] = None,
        count: bool = False,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> EntityCollection:
        """
        Query records, following @odata.nextLink until the result set is exhausted.

        Args:
            entity_set: Entity set name, e.g. 'accounts'
            filter: OData $filter expression
            columns: Columns to $select
            top: Maximum number of records overall
            order_by: OData $orderby expression
            count: Request the total record count
            page_size: Records per page (Prefer: odata.maxpagesize)
            max_pages: Stop after this many pages

        Returns:
            EntityCollection with all records fetched
        """
        params: dict[str, Any] = {}
        if columns:
            params['$select'] = ','.join(columns)
        if filter:
            params['$filter'] = filter
        if top is not None:
            params['$top'] = top
        if order_by:
            params['$orderby'] = order_by
        if count:
            params['$count'] = 'true'

        prefer = [FORMATTED_VALUES]
        if page_size:
            prefer.append(f'odata.maxpagesize={page_size}')
        headers = {'Prefer': ','.join(prefer)}

        collection = EntityCollection()
        url: Optional[str] = entity_set
        pages = 0
        while url:
            response = await self._request('GET', url, params=params, headers=headers)
            payload = response.json()
            collection.entities.extend(payload.get('value', []))
            if collection.total_count is None and '@odata.count' in payload:
                collection.total_count = payload['@odata.count']

            pages += 1
            if max_pages is not None and pages >= max_pages:
                break
            url = payload.get('@odata.nextLink')
            # nextLink already carries the query string
            params = None

        return collection

    @tracer.capture_method
    async def retrieve_page(
        self,
        entity_set: str,
        *,
        page_size: int,
        page_number: int,
        filter: Optional[str] = None,
        columns: Optional[list[str]] = None,
        order_by: Optional[str] = None,
    ) -> EntityCollection:
        """Fetch one page of a query by walking the server-side paging cookies."""
        params: dict[str, Any] = {'$count': 'true'}
        if columns:
            params['$select'] = ','.join(columns)
        if filter:
            params['$filter'] = filter
        if order_by:
            params['$orderby'] = order_by
        headers = {'Prefer': f'{FORMATTED_VALUES},odata.maxpagesize={page_size}'}

        total_count: Optional[int] = None
        url: Optional[str] = entity_set
        current = 0
        while url:
            response = await self._request('GET', url, params=params, headers=headers)
            payload = response.json()
            if total_count is None:
                total_count = payload.get('@odata.count')
            current += 1
            if current == page_number:
                return EntityCollection(entities=payload.get('value', []), total_count=total_count)
            url = payload.get('@odata.nextLink')
            params = None

        return EntityCollection(entities=[], total_count=total_count)

    @tracer.capture_method
    async def create(self, entity_set: str, payload: dict[str, Any]) -> UUID:
        """
        Create a record and return its id.

        Decimal and Money columns may be given as strings: the body is sent
        IEEE754Compatible, so the platform parses them without float rounding.
        The Web API answers 204 No Content and reports the new record URL in
        the OData-EntityId header.
        """
        response = await self._request('POST', entity_set, json=payload, headers={'Content-Type': JSON_IEEE754_COMPATIBLE})
        entity_url = response.headers.get('OData-EntityId', '')
        path = urlparse(entity_url).path
        if '(' not in path:
            raise DataverseServiceError(f'Create on {entity_set} returned no record id')
        return UUID(path[path.rindex('(') + 1:path.rindex(')')])

    @tracer.capture_method
    async def who_am_i(self) -> dict[str, Any]:
        """Call the WhoAmI function; a cheap connectivity and authorization check."""
        response = await self._request('GET', 'WhoAmI')
        return response.json()


def create_http_client(env: OrderRulesEnvVars, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Build the httpx client pointed at the environment's Web API endpoint."""
    return httpx.AsyncClient(
        base_url=env.dataverse_api_url,
        headers=ODATA_HEADERS,
        timeout=env.DATAVERSE_TIMEOUT_SECONDS,
        transport=transport,
    )
