"""Shared fixtures for the Retail Express connector tests."""

import pytest

from retailex_integration.config import RetailexConfig
from retailex_integration.entities import Entity, InMemoryEntityStore
from retailex_integration.events import RecordingEventCollector


class FakeTransport:
    """Stands in for SoapTransport, replaying scripted outcomes.

    Each item of ``script`` is either an exception to raise or a value to
    return. The script is shared by every transport a factory creates, so a
    retry after re-authentication continues where the previous one stopped.
    """

    def __init__(self, url, header, timeout, script, calls):
        self.url = url
        self.header = header
        self.timeout = timeout
        self._script = script
        self._calls = calls
        self.closed = False
        self.last_request = None
        self.last_response = None

    def call(self, call, data):
        self._calls.append((call, data))
        self.last_request = f"<request call='{call}'/>"
        outcome = self._script.pop(0)
        self.last_response = f"<response>{outcome!r}</response>"
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


class FakeTransportFactory:
    def __init__(self):
        self.script = []
        self.calls = []
        self.transports = []

    def __call__(self, url, header, timeout):
        transport = FakeTransport(url, header, timeout, self.script, self.calls)
        self.transports.append(transport)
        return transport


@pytest.fixture
def events():
    return RecordingEventCollector()


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def config():
    return RetailexConfig(
        url="https://rex.example.com/",
        client_id="1f5a0c2e",
        username="webstore",
        password="s3cret",
        node_id=7,
    )


@pytest.fixture
def entity_store():
    return InMemoryEntityStore()


@pytest.fixture
def make_address():
    def _make(entity_id, parent=None, **data):
        return Entity(
            entity_id=entity_id,
            type_str="address",
            unique_id=f"address-{entity_id}",
            data=data,
            parent=parent,
        )

    return _make


@pytest.fixture
def make_customer():
    def _make(entity_id=1, email="jane@example.com", billing=None, shipping=None, **data):
        relations = {}
        if billing is not None:
            relations["billing_address"] = billing
        if shipping is not None:
            relations["shipping_address"] = shipping
        customer = Entity(
            entity_id=entity_id,
            type_str="customer",
            unique_id=email,
            data=data,
            relations=relations,
        )
        for address in relations.values():
            if address.parent is None:
                address.parent = customer
        return customer

    return _make
