"""
Pytest configuration and shared fixtures for the order validation rules.

This module provides common test fixtures and configuration used across
unit and integration tests: environment variables, a mocked rules-data
source, command builders, API Gateway events and an in-memory Dataverse
Web API served through httpx.MockTransport.
"""

import json
import os
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional
from unittest.mock import AsyncMock, Mock

# Must be set before the observability module creates the Powertools instances
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "test-order-rules")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "TestOrderRules")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("DATAVERSE_URL", "https://contoso.crm.dynamics.com")
os.environ.setdefault("DATAVERSE_CREDENTIALS_SECRET_NAME", "test/dataverse/credentials")
os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("APP_VERSION", "test-1.0.0")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")

import httpx  # noqa: E402
import pytest  # noqa: E402

from order_rules.dal import BaseOrderRulesData  # noqa: E402
from order_rules.models.command import CreateOrderCommand, OrderLineCommand  # noqa: E402
from order_rules.models.rules_data import CustomerInfo, ProductInfo  # noqa: E402

CUSTOMER_ID = "0a7c2f5e-1d2b-4c3a-8e9f-123456789abc"
PRODUCT_ID = "5f1c1a4e-8b0e-4c8b-9d1e-0f6b1c2d3e4f"
OTHER_PRODUCT_ID = "9b2d4c6e-3f1a-4e5b-8c7d-abcdef012345"
TODAY = date(2024, 6, 15)

NOT_FOUND_CODE = "0x80040217"


# Rules data fixtures
@pytest.fixture
def rules_data() -> AsyncMock:
    """Rules data that knows one active customer and one active product."""
    mock = AsyncMock(spec=BaseOrderRulesData)
    mock.customer_exists.return_value = True
    mock.try_get_customer_info.return_value = CustomerInfo(
        id=CUSTOMER_ID, name="Contoso Ltd", is_active=True, credit_limit=Decimal("5000")
    )
    mock.product_exists.return_value = True
    mock.try_get_product_info.return_value = ProductInfo(
        id=PRODUCT_ID, name="Widget", is_active=True, price=Decimal("10.00"), stock_quantity=100
    )
    mock.try_get_product_price.return_value = Decimal("10.00")
    mock.is_order_number_unique.return_value = True
    return mock


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def valid_command() -> CreateOrderCommand:
    """An order that passes every rule against the rules_data fixture."""
    return CreateOrderCommand(
        customer_id=CUSTOMER_ID,
        order_date=datetime(2024, 6, 15),
        order_number="ORD-001",
        total_amount=Decimal("20.00"),
        lines=[OrderLineCommand(product_id=PRODUCT_ID, quantity=2, unit_price=Decimal("10.00"))],
    )


@pytest.fixture
def make_command(valid_command) -> Callable[..., CreateOrderCommand]:
    """Build a command from the valid one with some fields replaced."""

    def _make(**overrides: Any) -> CreateOrderCommand:
        return valid_command.model_copy(update=overrides)

    return _make


@pytest.fixture
def order_request_body() -> Dict[str, Any]:
    """Request body for the orders API, camelCase as sent by clients."""
    return {
        "customerId": CUSTOMER_ID,
        "orderDate": datetime.combine(date.today(), datetime.min.time()).isoformat(),
        "orderNumber": "ORD-001",
        "totalAmount": "20.00",
        "lines": [{"productId": PRODUCT_ID, "quantity": 2, "unitPrice": "10.00"}],
    }


# Lambda fixtures
@pytest.fixture
def lambda_context():
    """Create a mock Lambda context for testing."""
    context = Mock()
    context.function_name = "test-lambda-function"
    context.function_version = "1"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-lambda-function"
    context.memory_limit_in_mb = "512"
    context.remaining_time_in_millis = lambda: 30000
    context.aws_request_id = "test-request-id-123"
    context.log_group_name = "/aws/lambda/test-lambda-function"
    context.log_stream_name = "2024/01/01/[$LATEST]test123"
    return context


@pytest.fixture
def api_gateway_event() -> Callable[..., Dict[str, Any]]:
    """Build an API Gateway REST proxy event."""

    def _event(
        method: str,
        path: str,
        body: Optional[Any] = None,
        query: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        return {
            "resource": path,
            "path": path,
            "httpMethod": method,
            "headers": {"Content-Type": "application/json", "User-Agent": "test-agent/1.0"},
            "multiValueHeaders": {"Content-Type": ["application/json"], "User-Agent": ["test-agent/1.0"]},
            "queryStringParameters": query,
            "multiValueQueryStringParameters": {k: [v] for k, v in query.items()} if query else None,
            "pathParameters": None,
            "stageVariables": None,
            "body": body if body is None or isinstance(body, str) else json.dumps(body),
            "isBase64Encoded": False,
            "requestContext": {
                "accountId": "123456789012",
                "resourceId": "abc123",
                "stage": "test",
                "requestId": "test-request-id",
                "httpMethod": method,
                "path": f"/test{path}",
                "resourcePath": path,
                "identity": {"sourceIp": "127.0.0.1", "userAgent": "test-agent/1.0"},
                "apiId": "test-api-id",
            },
        }

    return _event


# In-memory Dataverse Web API
class FakeDataverse:
    """
    Serves the subset of the Dataverse Web API the clients use.

    Records are plain Web API JSON dicts keyed by lowercase id. Paths listed
    in ``failures`` answer with the given status code instead.
    """

    _STRING_EQ = re.compile(r"^(\w+) eq '(.*)'$")
    _GUID_EQ = re.compile(r"^(\w+) eq ([0-9a-fA-F-]{36})$")
    _KEY = re.compile(r"^(\w+)\(([0-9a-fA-F-]{36})\)$")

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {"accounts": {}, "products": {}, "new_orders": {}}
        self.failures: Dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.created: list[Dict[str, Any]] = []
        self.token_requests = 0
        self.new_id = "c0ffee00-0000-4000-8000-000000000001"
        self.retry_after = 7

    def add_account(self, account_id: str = CUSTOMER_ID, statecode: int = 0, name: str = "Contoso Ltd") -> None:
        self.tables["accounts"][account_id.lower()] = {
            "accountid": account_id, "name": name, "statecode": statecode, "creditlimit": 5000.0,
        }

    def add_product(
        self,
        product_id: str = PRODUCT_ID,
        statecode: int = 1,
        price: Any = 10.0,
        quantity: Any = 100,
        name: str = "Widget",
    ) -> None:
        self.tables["products"][product_id.lower()] = {
            "productid": product_id, "name": name, "statecode": statecode, "price": price, "quantityonhand": quantity,
        }

    def add_order(self, order_id: str, order_number: str, customer_id: str = CUSTOMER_ID, **values: Any) -> None:
        record = {
            "new_orderid": order_id,
            "new_ordernumber": order_number,
            "_new_customerid_value": customer_id,
            "new_orderdate": "2024-06-15T00:00:00Z",
            "new_totalamount": 20.0,
            "_new_productid_value": PRODUCT_ID,
            "_new_productid_value@OData.Community.Display.V1.FormattedValue": "Widget",
            "new_quantity": 2,
            "new_unitprice": 10.0,
        }
        record.update(values)
        self.tables["new_orders"][order_id.lower()] = record

    @property
    def data_requests(self) -> list[httpx.Request]:
        """Requests sent to the Web API, excluding token requests."""
        return [r for r in self.requests if "/api/data/" in r.url.path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "login.microsoftonline.com":
            self.token_requests += 1
            return httpx.Response(200, json={"token_type": "Bearer", "access_token": "test-token", "expires_in": 3600})

        resource = request.url.path.split("/api/data/v9.2/", 1)[-1]
        for prefix, status_code in self.failures.items():
            if resource.startswith(prefix):
                headers = {"Retry-After": str(self.retry_after)} if status_code == 429 else None
                return httpx.Response(
                    status_code, headers=headers, json={"error": {"code": "0x80040216", "message": "Generic SQL error."}}
                )

        if resource == "WhoAmI":
            return httpx.Response(200, json={
                "BusinessUnitId": "11111111-1111-1111-1111-111111111111",
                "UserId": "22222222-2222-2222-2222-222222222222",
                "OrganizationId": "33333333-3333-3333-3333-333333333333",
            })

        if request.method == "POST":
            self.created.append({"entity_set": resource, "payload": json.loads(request.content)})
            return httpx.Response(204, headers={
                "OData-EntityId": f"https://contoso.crm.dynamics.com/api/data/v9.2/{resource}({self.new_id})",
            })

        match = self._KEY.match(resource)
        if match:
            record = self.tables.get(match.group(1), {}).get(match.group(2).lower())
            if record is None:
                return httpx.Response(404, json={"error": {"code": NOT_FOUND_CODE, "message": "Does Not Exist"}})
            return httpx.Response(200, json=record)

        if resource in self.tables:
            return self._query(request, resource)

        return httpx.Response(404, json={"error": {"code": "0x8006088a", "message": f"Resource not found: {resource}"}})

    def _query(self, request: httpx.Request, entity_set: str) -> httpx.Response:
        params = request.url.params
        records = list(self.tables[entity_set].values())

        filter_expression = params.get("$filter")
        if filter_expression:
            match = self._STRING_EQ.match(filter_expression)
            if match:
                column, value = match.group(1), match.group(2).replace("''", "'")
            else:
                match = self._GUID_EQ.match(filter_expression)
                column, value = match.group(1), match.group(2).lower()
            records = [r for r in records if str(r.get(column, "")).lower() == value.lower()]

        order_by = params.get("$orderby")
        if order_by:
            column, _, direction = order_by.partition(" ")
            records.sort(key=lambda r: r.get(column) or "", reverse=direction == "desc")

        if "$top" in params:
            records = records[:int(params["$top"])]

        total = len(records)
        offset = int(params.get("$skiptoken", "0"))
        page_size_match = re.search(r"odata\.maxpagesize=(\d+)", request.headers.get("Prefer", ""))
        page_size = int(page_size_match.group(1)) if page_size_match else 5000

        payload: Dict[str, Any] = {"value": records[offset:offset + page_size]}
        if params.get("$count") == "true":
            payload["@odata.count"] = total
        if offset + page_size < total:
            payload["@odata.nextLink"] = str(request.url.copy_set_param("$skiptoken", str(offset + page_size)))
        return httpx.Response(200, json=payload)


@pytest.fixture
def dataverse() -> FakeDataverse:
    return FakeDataverse()


@pytest.fixture
def dataverse_transport(dataverse) -> httpx.MockTransport:
    return httpx.MockTransport(dataverse.handler)


@pytest.fixture
def connected_dataverse(monkeypatch, dataverse, dataverse_transport) -> FakeDataverse:
    """Route the Lambda hosts' Dataverse wiring to the in-memory Web API with one customer and product."""
    from order_rules.dal.dataverse_client import create_http_client
    from order_rules.handlers.utils import dataverse as dataverse_wiring
    from order_rules.security.secrets_manager import DataverseCredentials

    monkeypatch.setattr(
        dataverse_wiring, "create_http_client", lambda env: create_http_client(env, transport=dataverse_transport)
    )
    monkeypatch.setattr(
        dataverse_wiring,
        "get_dataverse_credentials",
        lambda secret_name, region_name: DataverseCredentials(
            tenant_id="tenant-1", client_id="client-1", client_secret="secret-1"
        ),
    )
    dataverse.add_account(CUSTOMER_ID)
    dataverse.add_product(PRODUCT_ID)
    return dataverse


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Reset cached configuration and tokens between tests, and keep AppConfig offline."""
    from order_rules.handlers.utils import dynamic_configuration
    from order_rules.handlers.utils.dataverse import reset_token_provider

    monkeypatch.setattr(dynamic_configuration, "get_app_config", lambda **kwargs: {})
    dynamic_configuration._config_cache.clear()
    dynamic_configuration._last_known_good.clear()
    reset_token_provider()
    yield
    dynamic_configuration._config_cache.clear()
    dynamic_configuration._last_known_good.clear()
    reset_token_provider()
