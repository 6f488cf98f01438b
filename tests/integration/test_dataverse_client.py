"""
Integration tests for the Dataverse Web API client.

The client talks to the in-memory Web API from conftest through
httpx.MockTransport, so requests, headers, paging and error payloads are
exercised end to end without a network.
"""

from uuid import UUID

import httpx
import pytest

from order_rules.dal.dataverse_client import (
    ClientCredentialsTokenProvider,
    DataverseClient,
    DataverseRecordNotFoundError,
    DataverseServiceError,
    create_http_client,
    formatted_value,
    quote_literal,
)
from order_rules.handlers.models.env_vars import get_handler_env_vars
from order_rules.security.secrets_manager import DataverseCredentials

CUSTOMER_ID = "0a7c2f5e-1d2b-4c3a-8e9f-123456789abc"
MISSING_ID = "ffffffff-ffff-4fff-8fff-ffffffffffff"


class Clock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def token_provider(clock):
    credentials = DataverseCredentials(tenant_id="tenant-1", client_id="client-1", client_secret="secret-1")
    return ClientCredentialsTokenProvider(
        credentials_loader=lambda: credentials,
        resource_url="https://contoso.crm.dynamics.com/",
        clock=clock,
    )


def add_orders(dataverse, count: int):
    for index in range(count):
        dataverse.add_order(
            f"00000000-0000-4000-8000-00000000000{index}",
            f"ORD-{index:03d}",
            new_orderdate=f"2024-06-{10 + index:02d}T00:00:00Z",
        )


class TestRetrieve:
    """Test cases for single record retrieval."""

    @pytest.mark.asyncio
    async def test_retrieve_record(self, dataverse, dataverse_transport, token_provider):
        dataverse.add_account(CUSTOMER_ID)

        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            record = await DataverseClient(http, token_provider).retrieve("accounts", UUID(CUSTOMER_ID), ["name"])

        assert record["name"] == "Contoso Ltd"
        request = dataverse.data_requests[0]
        assert str(request.url).startswith(f"https://contoso.crm.dynamics.com/api/data/v9.2/accounts({CUSTOMER_ID})")
        assert request.url.params["$select"] == "name"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["OData-Version"] == "4.0"
        assert "FormattedValue" in request.headers["Prefer"]

    @pytest.mark.asyncio
    async def test_missing_record_raises_not_found(self, dataverse_transport):
        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            with pytest.raises(DataverseRecordNotFoundError) as exc_info:
                await DataverseClient(http).retrieve("accounts", MISSING_ID)

        assert exc_info.value.platform_code == "0x80040217"
        assert exc_info.value.error_code == "DATAVERSE_RECORD_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_not_found_platform_code_on_other_status(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": "0x80040217", "message": "account Does Not Exist"}})

        async with create_http_client(get_handler_env_vars(), transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(DataverseRecordNotFoundError):
                await DataverseClient(http).retrieve("accounts", CUSTOMER_ID)

    @pytest.mark.asyncio
    async def test_server_error_raises_service_error(self, dataverse, dataverse_transport):
        dataverse.failures["accounts"] = 500

        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            with pytest.raises(DataverseServiceError) as exc_info:
                await DataverseClient(http).retrieve("accounts", CUSTOMER_ID)

        assert not isinstance(exc_info.value, DataverseRecordNotFoundError)
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Generic SQL error."

    @pytest.mark.asyncio
    async def test_unreachable_platform_raises_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with create_http_client(get_handler_env_vars(), transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(DataverseServiceError) as exc_info:
                await DataverseClient(http).retrieve("accounts", CUSTOMER_ID)

        assert exc_info.value.error_code == "DATAVERSE_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_throttled_request_carries_retry_after(self):
        def handler(request):
            return httpx.Response(
                429,
                headers={"Retry-After": "12"},
                json={"error": {"code": "0x80072322", "message": "Number of requests exceeded the limit."}},
            )

        async with create_http_client(get_handler_env_vars(), transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(DataverseServiceError) as exc_info:
                await DataverseClient(http).retrieve("accounts", CUSTOMER_ID)

        assert exc_info.value.error_code == "DATAVERSE_UNAVAILABLE"
        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        async with create_http_client(get_handler_env_vars(), transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(DataverseServiceError) as exc_info:
                await DataverseClient(http).who_am_i()

        assert exc_info.value.message == "Dataverse returned HTTP 502"


class TestTokenProvider:
    """Test cases for client-credentials tokens."""

    @pytest.mark.asyncio
    async def test_token_request(self, dataverse, dataverse_transport, token_provider):
        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            token = await token_provider.get_token(http)

        request = dataverse.requests[0]
        assert token == "test-token"
        assert str(request.url) == "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
        form = dict(httpx.QueryParams(request.content.decode()))
        assert form["grant_type"] == "client_credentials"
        assert form["client_id"] == "client-1"
        assert form["scope"] == "https://contoso.crm.dynamics.com/.default"

    @pytest.mark.asyncio
    async def test_token_is_reused_until_near_expiry(self, dataverse, dataverse_transport, token_provider, clock):
        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            client = DataverseClient(http, token_provider)
            await client.who_am_i()
            clock.now += 3000
            await client.who_am_i()
            assert dataverse.token_requests == 1

            clock.now += 301
            await client.who_am_i()

        assert dataverse.token_requests == 2

    @pytest.mark.asyncio
    async def test_unauthorized_response_invalidates_token(self, token_provider):
        def handler(request):
            if request.url.host == "login.microsoftonline.com":
                return httpx.Response(200, json={"access_token": "expired-token", "expires_in": 3600})
            return httpx.Response(401, json={"error": {"code": "0x80072560", "message": "Unauthorized"}})

        async with create_http_client(get_handler_env_vars(), transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(DataverseServiceError) as exc_info:
                await DataverseClient(http, token_provider).who_am_i()

        assert exc_info.value.status_code == 401
        assert token_provider.has_valid_token is False

    @pytest.mark.asyncio
    async def test_rejected_token_request(self, token_provider):
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_client"})

        async with create_http_client(get_handler_env_vars(), transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(DataverseServiceError) as exc_info:
                await token_provider.get_token(http)

        assert exc_info.value.status_code == 400


class TestRetrieveMultiple:
    """Test cases for queries and paging."""

    @pytest.mark.asyncio
    async def test_filter_and_top(self, dataverse, dataverse_transport):
        add_orders(dataverse, 3)

        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            result = await DataverseClient(http).retrieve_multiple(
                "new_orders", filter=f"new_ordernumber eq {quote_literal('ORD-001')}", columns=["new_orderid"], top=1
            )

        assert [r["new_ordernumber"] for r in result.entities] == ["ORD-001"]
        params = dataverse.data_requests[0].url.params
        assert params["$filter"] == "new_ordernumber eq 'ORD-001'"
        assert params["$top"] == "1"

    @pytest.mark.asyncio
    async def test_follows_next_link(self, dataverse, dataverse_transport):
        add_orders(dataverse, 5)

        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            result = await DataverseClient(http).retrieve_multiple("new_orders", page_size=2, count=True)

        assert len(result.entities) == 5
        assert result.total_count == 5
        assert len(dataverse.data_requests) == 3
        assert "odata.maxpagesize=2" in dataverse.data_requests[0].headers["Prefer"]

    @pytest.mark.asyncio
    async def test_max_pages(self, dataverse, dataverse_transport):
        add_orders(dataverse, 5)

        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            result = await DataverseClient(http).retrieve_multiple("new_orders", page_size=2, max_pages=1)

        assert len(result.entities) == 2
        assert result.total_count is None

    @pytest.mark.asyncio
    async def test_retrieve_page(self, dataverse, dataverse_transport):
        add_orders(dataverse, 5)

        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            client = DataverseClient(http)
            second = await client.retrieve_page("new_orders", page_size=2, page_number=2, order_by="new_orderdate desc")
            beyond = await client.retrieve_page("new_orders", page_size=2, page_number=4)

        assert [r["new_ordernumber"] for r in second.entities] == ["ORD-002", "ORD-001"]
        assert second.total_count == 5
        assert beyond.entities == []
        assert beyond.total_count == 5


class TestCreateAndWhoAmI:
    """Test cases for record creation and the WhoAmI function."""

    @pytest.mark.asyncio
    async def test_create_returns_new_id(self, dataverse, dataverse_transport):
        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            order_id = await DataverseClient(http).create("new_orders", {"new_ordernumber": "ORD-100"})

        assert order_id == UUID(dataverse.new_id)
        assert dataverse.created == [{"entity_set": "new_orders", "payload": {"new_ordernumber": "ORD-100"}}]
        assert dataverse.requests[-1].headers["Content-Type"] == "application/json; IEEE754Compatible=true"

    @pytest.mark.asyncio
    async def test_create_without_entity_id_header(self):
        def handler(request):
            return httpx.Response(204)

        async with create_http_client(get_handler_env_vars(), transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(DataverseServiceError):
                await DataverseClient(http).create("new_orders", {})

    @pytest.mark.asyncio
    async def test_who_am_i(self, dataverse_transport):
        async with create_http_client(get_handler_env_vars(), transport=dataverse_transport) as http:
            who_am_i = await DataverseClient(http).who_am_i()

        assert who_am_i["OrganizationId"] == "33333333-3333-3333-3333-333333333333"


class TestHelpers:
    """Test cases for OData helpers."""

    def test_quote_literal_doubles_single_quotes(self):
        assert quote_literal("O'Brien") == "'O''Brien'"

    def test_formatted_value(self):
        record = {"_new_productid_value@OData.Community.Display.V1.FormattedValue": "Widget"}

        assert formatted_value(record, "_new_productid_value") == "Widget"
        assert formatted_value(record, "statecode") is None

    def test_api_url(self):
        assert get_handler_env_vars().dataverse_api_url == "https://contoso.crm.dynamics.com/api/data/v9.2/"
