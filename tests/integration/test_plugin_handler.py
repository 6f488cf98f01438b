"""
Integration tests for the Dataverse plugin webhook handler.

Dataverse posts the RemoteExecutionContext of a Create on new_order; the
handler answers 200 to let the operation proceed and 400 to cancel it.
"""

import json
from datetime import date, datetime, time, timezone

import pytest

from order_rules.handlers.models.env_vars import get_handler_env_vars
from order_rules.handlers.plugin_handler import (
    InvalidPluginExecutionError,
    execute,
    get_order_target,
    lambda_handler,
)
from order_rules.handlers.utils import dataverse as dataverse_wiring
from order_rules.models.plugin_context import RemoteExecutionContext
from order_rules.security.secrets_manager import SecretNotFoundError

CUSTOMER_ID = "0A7C2F5E-1D2B-4C3A-8E9F-123456789ABC"
PRODUCT_ID = "5f1c1a4e-8b0e-4c8b-9d1e-0f6b1c2d3e4f"


def wcf_today() -> str:
    midnight = datetime.combine(date.today(), time.min).replace(tzinfo=timezone.utc)
    return f"/Date({int(midnight.timestamp() * 1000)})/"


def attributes(values: dict) -> list[dict]:
    return [{"key": key, "value": value} for key, value in values.items()]


@pytest.fixture
def order_attributes() -> dict:
    return {
        "new_customerid": {"Id": CUSTOMER_ID, "LogicalName": "account", "Name": "Contoso Ltd"},
        "new_orderdate": wcf_today(),
        "new_ordernumber": "ORD-500",
        "new_totalamount": {"Value": 20.0},
        "new_productid": {"Id": PRODUCT_ID, "LogicalName": "product", "Name": "Widget"},
        "new_quantity": 2,
        "new_unitprice": {"Value": 10.0},
    }


@pytest.fixture
def execution_context(order_attributes):
    """Build a serialized RemoteExecutionContext around an order Target."""

    def _context(message_name: str = "Create", logical_name: str = "new_order", values: dict = None) -> dict:
        return {
            "MessageName": message_name,
            "PrimaryEntityName": logical_name,
            "Stage": 20,
            "Depth": 1,
            "CorrelationId": "9f0e1d2c-3b4a-4958-8776-655443322110",
            "OrganizationName": "contoso",
            "InputParameters": attributes({
                "Target": {
                    "LogicalName": logical_name,
                    "Id": "00000000-0000-0000-0000-000000000000",
                    "Attributes": attributes(order_attributes if values is None else values),
                },
            }),
        }

    return _context


@pytest.fixture
def invoke(api_gateway_event, lambda_context):
    def _invoke(payload):
        response = lambda_handler(api_gateway_event("POST", "/plugin/orders", payload), lambda_context)
        return response["statusCode"], json.loads(response["body"])

    return _invoke


class TestLambdaHandler:
    """Test cases for the webhook entry point."""

    def test_valid_order_is_allowed(self, invoke, connected_dataverse, execution_context):
        status, payload = invoke(execution_context())

        assert status == 200
        assert payload == {"status": "valid"}
        assert connected_dataverse.created == []

    def test_invalid_order_is_rejected(self, invoke, connected_dataverse, execution_context, order_attributes):
        order_attributes["new_totalamount"] = {"Value": 25.0}

        status, payload = invoke(execution_context())

        assert status == 400
        assert payload["message"] == "Order validation failed: Total amount does not match the sum of line totals."
        assert payload["errors"] == [{
            "code": "TOTAL_AMOUNT_MISMATCH",
            "field": "",
            "message": "Total amount does not match the sum of line totals.",
        }]

    def test_messages_are_joined(self, invoke, connected_dataverse, execution_context):
        connected_dataverse.tables["accounts"].clear()

        status, payload = invoke(execution_context())

        assert status == 400
        assert payload["message"] == (
            "Order validation failed: Customer does not exist.; Customer is inactive and cannot place orders."
        )

    def test_json_lines_are_validated(self, invoke, connected_dataverse, execution_context, order_attributes):
        order_attributes["new_orderlinesjson"] = json.dumps([
            {"productId": "9b2d4c6e-3f1a-4e5b-8c7d-abcdef012345", "quantity": 1, "unitPrice": 5},
        ])
        order_attributes["new_totalamount"] = {"Value": 25.0}

        status, payload = invoke(execution_context())

        assert status == 400
        assert {e["field"] for e in payload["errors"]} == {"lines[1].product_id"}

    def test_platform_failure_fails_closed(self, invoke, connected_dataverse, execution_context):
        connected_dataverse.failures["accounts"] = 500

        status, payload = invoke(execution_context())

        assert status == 400
        assert {e["code"] for e in payload["errors"]} == {"CUSTOMER_NOT_FOUND", "CUSTOMER_INACTIVE"}

    @pytest.mark.parametrize("message_name,logical_name", [("Update", "new_order"), ("Create", "account")])
    def test_other_operations_are_skipped(self, invoke, connected_dataverse, execution_context, message_name, logical_name):
        status, payload = invoke(execution_context(message_name, logical_name))

        assert status == 200
        assert payload == {"status": "skipped"}
        assert connected_dataverse.requests == []

    def test_incomplete_order_is_skipped(self, invoke, connected_dataverse, execution_context, order_attributes):
        del order_attributes["new_ordernumber"]

        status, payload = invoke(execution_context())

        assert status == 200
        assert payload == {"status": "skipped"}

    def test_unmappable_order_is_rejected(self, invoke, connected_dataverse, execution_context, order_attributes):
        order_attributes["new_orderdate"] = "fifteenth of June"

        status, payload = invoke(execution_context())

        assert status == 400
        assert payload["message"].startswith("Failed to map entity to CreateOrderCommand: Invalid date value")
        assert connected_dataverse.requests == []

    @pytest.mark.parametrize("attribute,value,reason", [
        ("new_quantity", "two", "Invalid order attribute"),
        ("new_orderlinesjson", '[{"productId": "x", "quantity": "lots", "unitPrice": 5}]', "Invalid order lines JSON"),
    ])
    def test_malformed_attributes_are_rejected(
        self, invoke, connected_dataverse, execution_context, order_attributes, attribute, value, reason
    ):
        order_attributes[attribute] = value

        status, payload = invoke(execution_context())

        assert status == 400
        assert payload["message"].startswith(f"Failed to map entity to CreateOrderCommand: {reason}")
        assert connected_dataverse.requests == []

    def test_malformed_context(self, invoke):
        status, payload = invoke("this is not json")

        assert status == 400
        assert payload == {"message": "Malformed execution context."}

    def test_missing_credentials_propagate(self, invoke, connected_dataverse, execution_context, monkeypatch):
        def missing(secret_name, region_name):
            raise SecretNotFoundError(f"Secret '{secret_name}' not found")

        monkeypatch.setattr(dataverse_wiring, "get_dataverse_credentials", missing)

        with pytest.raises(SecretNotFoundError):
            invoke(execution_context())


class TestExecute:
    """Test cases for the plugin logic without the HTTP envelope."""

    def test_execute_returns_outcome(self, connected_dataverse, execution_context):
        context = RemoteExecutionContext.model_validate(execution_context())

        assert execute(context, get_handler_env_vars()) == "valid"

    def test_execute_raises_with_result(self, connected_dataverse, execution_context, order_attributes):
        order_attributes["new_quantity"] = 0
        order_attributes["new_totalamount"] = {"Value": 1.0}
        context = RemoteExecutionContext.model_validate(execution_context())

        with pytest.raises(InvalidPluginExecutionError) as exc_info:
            execute(context, get_handler_env_vars())

        assert exc_info.value.error_code == "ORDER_VALIDATION_FAILED"
        assert exc_info.value.result.get_error_codes() == ["QUANTITY_INVALID", "TOTAL_AMOUNT_MISMATCH"]

    def test_get_order_target(self, execution_context):
        target = get_order_target(RemoteExecutionContext.model_validate(execution_context()))

        assert target.logical_name == "new_order"
        assert target.get("new_ordernumber") == "ORD-500"

    def test_no_target(self):
        assert get_order_target(RemoteExecutionContext.model_validate({"MessageName": "Create"})) is None
