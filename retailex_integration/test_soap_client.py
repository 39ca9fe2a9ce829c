"""Tests for the session handling of the Retail Express SOAP client."""

import dataclasses
from typing import List, Optional

import pytest
from pydantic import BaseModel

from retailex_integration.config import RetailexConfig
from retailex_integration.errors import ConfigurationError, TransportError
from retailex_integration.events import LogLevel
from retailex_integration.soap_client import (
    RetailexSoapClient,
    SessionState,
    normalize_response,
    prepare_payload,
)
from retailex_integration.transport import SoapFault, SoapRecord


@pytest.fixture
def client(events, transport_factory):
    return RetailexSoapClient(events=events, transport_factory=transport_factory)


def _contains_objects(value) -> bool:
    if isinstance(value, dict):
        return any(_contains_objects(item) for item in value.values())
    if isinstance(value, list):
        return any(_contains_objects(item) for item in value)
    return not isinstance(value, (str, int, float, bool, type(None)))


# ── init ──────────────────────────────────────────────────────────────


@pytest.mark.parametrize("missing", ["client_id", "username", "password"])
def test_init_with_empty_credential_fails_without_transport(client, events, transport_factory, config, missing):
    setattr(config, missing, "")

    assert client.init(config) is False
    assert transport_factory.transports == []
    assert client.transport is None
    assert client.state is SessionState.UNINITIALIZED
    assert len(events.events) == 1
    level, code, _, data = events.events[0]
    assert level is LogLevel.ERROR
    assert code.endswith("_fail")
    assert data["error"] == "AuthenticationError"


def test_init_failure_scenario_empty_client_id(client, events):
    config = RetailexConfig(url="https://rex.example.com", client_id="", username="u", password="p")

    assert client.init(config) is False
    assert events.codes() == ["rex_isoap_fail"]


def test_init_success_builds_transport_with_header(client, events, transport_factory, config):
    assert client.init(config) is True

    transport = transport_factory.transports[0]
    assert transport.url == "https://rex.example.com/dotnet/admin/webservices/v2/webstore/service.asmx"
    assert transport.header.client_id == "1f5a0c2e"
    assert transport.header.username == "webstore"
    assert transport.header.password == "s3cret"
    assert client.state is SessionState.AUTHENTICATED
    assert events.codes() == ["rex_isoap"]
    assert events.events[0][3]["soap header"]["password"] == "***"


def test_init_twice_raises(client, events, config):
    client.init(config)

    with pytest.raises(ConfigurationError):
        client.init(config)
    assert events.codes() == ["rex_isoap"]


@pytest.mark.parametrize("target", [None, RetailexConfig(url="  ")])
def test_init_without_target_raises(client, events, target):
    with pytest.raises(ConfigurationError):
        client.init(target)
    assert events.events == []


# ── call ──────────────────────────────────────────────────────────────


def test_call_success_normalizes_and_logs(client, events, transport_factory, config):
    client.init(config)
    transport_factory.script.append(SoapRecord(Customer=SoapRecord(Result="Success", CustomerId="42")))

    result = client.call("CustomerCreateUpdate", {"CustomerXML": {}})

    assert result == {"Customer": {"Result": "Success", "CustomerId": "42"}}
    assert events.codes() == ["rex_isoap", "rex_soap_call", "rex_soap_success"]
    level, _, _, data = events.find("rex_soap_success")[0]
    assert level is LogLevel.DEBUG
    assert data["call"] == "CustomerCreateUpdate"
    assert data["result"] == result


def test_expired_session_is_renewed_and_call_retried_once(client, events, transport_factory, config):
    client.init(config)
    transport_factory.script.extend([
        SoapFault("soap:Receiver", "Session expired, please relogin"),
        SoapRecord(Result="Success"),
    ])

    result = client.call("CustomerCreateUpdate", {"a": 1})

    assert result == {"Result": "Success"}
    assert len(transport_factory.calls) == 2
    assert len(transport_factory.transports) == 2
    assert transport_factory.transports[0].closed
    assert len(events.find("rex_soap_call_fault")) + len(events.find("rex_soap_call")) == 2
    assert events.codes().count("rex_isoap") == 2
    assert client.state is SessionState.AUTHENTICATED


@pytest.mark.parametrize("message", [
    "SESSION EXPIRED",
    "Your session expired.",
    "Invalid session, please Try To Relogin",
])
def test_expiry_markers_match_case_insensitively(client, transport_factory, config, message):
    client.init(config)
    transport_factory.script.extend([SoapFault("Server", message), "ok"])

    assert client.call("Ping", {}) == "ok"
    assert len(transport_factory.calls) == 2


def test_second_expiry_fault_is_not_retried_again(client, events, transport_factory, config):
    client.init(config)
    transport_factory.script.extend([
        SoapFault("soap:Receiver", "Session expired"),
        SoapFault("soap:Receiver", "Session expired"),
        "never reached",
    ])

    with pytest.raises(TransportError) as exc_info:
        client.call("CustomerCreateUpdate", {"a": 1})

    assert len(transport_factory.calls) == 2
    assert transport_factory.script == ["never reached"]
    assert isinstance(exc_info.value.__cause__, SoapFault)
    assert exc_info.value.fault_code == "soap:Receiver"


def test_other_faults_are_not_retried(client, events, transport_factory, config):
    client.init(config)
    fault = SoapFault("soap:Sender", "Customer email is invalid")
    transport_factory.script.extend([fault, "never reached"])

    with pytest.raises(TransportError) as exc_info:
        client.call("CustomerCreateUpdate", {"BillEmail": "nope"})

    assert len(transport_factory.calls) == 1
    assert len(transport_factory.transports) == 1
    assert exc_info.value.__cause__ is fault
    assert exc_info.value.last_request == "<request call='CustomerCreateUpdate'/>"

    level, _, message, data = events.find("rex_soap_fault")[0]
    assert level is LogLevel.ERROR
    assert "Customer email is invalid" in message
    assert data["data"] == {"BillEmail": "nope"}
    assert data["code"] == "soap:Sender"
    assert "SoapFault" in data["trace"]
    assert data["request"] is not None
    assert data["response"] is not None
    assert "rex_soap_success" not in events.codes()


def test_failed_reauthentication_faults_the_client(client, transport_factory, config):
    client.init(config)
    transport_factory.script.append(SoapFault("Server", "Session expired"))
    config.password = ""

    with pytest.raises(TransportError) as exc_info:
        client.call("Ping", {})

    assert exc_info.value.fault_message == "Session expired"
    assert exc_info.value.last_request is not None
    assert client.state is SessionState.FAULTED
    with pytest.raises(ConfigurationError):
        client.call("Ping", {})


def test_faulted_client_cannot_be_initialised_again(client, transport_factory, config):
    client.init(config)
    transport_factory.script.append(SoapFault("Server", "Session expired"))
    config.password = ""
    with pytest.raises(TransportError):
        client.call("Ping", {})
    assert client.state is SessionState.FAULTED

    config.password = "s3cret"
    with pytest.raises(ConfigurationError):
        client.init(config)

    assert client.state is SessionState.FAULTED
    assert client.transport is None


def test_custom_expiry_markers(client, transport_factory, config):
    config.expiry_markers = ("token invalid",)
    client.init(config)
    transport_factory.script.extend([SoapFault("Server", "Token INVALID"), "ok"])

    assert client.call("Ping", {}) == "ok"

    transport_factory.script.extend([SoapFault("Server", "Session expired"), "ok"])
    with pytest.raises(TransportError):
        client.call("Ping", {})


def test_call_after_close_authenticates_again(client, transport_factory, config):
    client.init(config)
    client.close()
    transport_factory.script.append("ok")

    assert client.call("Ping", {}) == "ok"
    assert len(transport_factory.transports) == 2


def test_call_after_close_without_credentials_logs_the_failure(client, events, transport_factory, config):
    client.init(config)
    client.close()
    config.username = ""

    with pytest.raises(TransportError) as exc_info:
        client.call("Ping", {"sku": "A1"})

    assert "authentication unavailable" in str(exc_info.value)
    assert transport_factory.calls == []
    [(level, _, _, data)] = events.find("rex_soap_fault")
    assert level is LogLevel.ERROR
    assert data["data"] == {"sku": "A1"}
    assert "rex_soap_success" not in events.codes()


def test_call_before_init_raises(client):
    with pytest.raises(ConfigurationError):
        client.call("Ping", {})


def test_call_requires_name(client, config):
    client.init(config)
    with pytest.raises(ValueError):
        client.call("", {})


def test_scalar_payload_is_wrapped(client, transport_factory, config):
    client.init(config)
    transport_factory.script.append(None)

    client.call("CustomerGetDetails", "jane@example.com")

    assert transport_factory.calls == [("CustomerGetDetails", ["jane@example.com"])]


# ── payload and response shapes ──────────────────────────────────────


@dataclasses.dataclass
class _Line:
    sku: str
    qty: int


class _Order(BaseModel):
    order_id: str
    lines: List[_Line]
    note: Optional[str] = None


def test_prepare_payload_flattens_objects():
    assert prepare_payload(SoapRecord(a=1)) == {"a": 1}
    assert prepare_payload(_Line("A1", 2)) == {"sku": "A1", "qty": 2}
    assert prepare_payload({"a": 1}) == {"a": 1}
    assert prepare_payload([1, 2]) == [1, 2]
    assert prepare_payload(5) == [5]


def test_normalize_response_converts_every_depth():
    response = SoapRecord(
        Orders=[
            _Order(order_id="1", lines=[_Line("A1", 2)]),
            SoapRecord(order_id="2", lines=(SoapRecord(sku="B2", qty=1),)),
        ],
        Meta={"page": SoapRecord(number=1)},
        Total=2,
    )

    result = normalize_response(response)

    assert result == {
        "Orders": [
            {"order_id": "1", "lines": [{"sku": "A1", "qty": 2}], "note": None},
            {"order_id": "2", "lines": [{"sku": "B2", "qty": 1}]},
        ],
        "Meta": {"page": {"number": 1}},
        "Total": 2,
    }
    assert not _contains_objects(result)


@pytest.mark.parametrize("plain", [
    None,
    "Success",
    42,
    [1, "a", None],
    {"Customer": {"Result": "Success", "Items": [{"a": 1}, {"b": [2, 3]}]}},
])
def test_normalize_response_is_idempotent_on_plain_values(plain):
    once = normalize_response(plain)
    assert once == plain
    assert normalize_response(once) == once
