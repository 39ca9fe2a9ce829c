"""Retail Express Integration Package.

This package pushes customers and their addresses from the local entity store
to Retail Express over its session-authenticated SOAP webstore service.
"""

from .config import RetailexConfig
from .customer_gateway import CustomerGateway
from .entities import Action, Entity, InMemoryEntityStore
from .errors import (
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    RetailexError,
    SyncError,
    TransportError,
    UnsupportedActionError,
)
from .node import RetailexNode
from .soap_client import RetailexSoapClient, normalize_response

__all__ = [
    "Action",
    "AuthenticationError",
    "ConfigurationError",
    "CustomerGateway",
    "Entity",
    "GatewayError",
    "InMemoryEntityStore",
    "RetailexConfig",
    "RetailexError",
    "RetailexNode",
    "RetailexSoapClient",
    "SyncError",
    "TransportError",
    "UnsupportedActionError",
    "normalize_response",
]
