"""Exceptions raised by the Retail Express connector."""

from typing import Optional


class RetailexError(Exception):
    """Base class for all connector errors."""


class ConfigurationError(RetailexError):
    """Missing connection target or SOAP API initialised twice."""


class AuthenticationError(RetailexError):
    """Client id, username or password missing or rejected."""


class TransportError(RetailexError):
    """A remote call failed after the retry budget was used up."""

    def __init__(
        self,
        message: str,
        fault_code: Optional[str] = None,
        fault_message: Optional[str] = None,
        last_request: Optional[str] = None,
        last_response: Optional[str] = None,
    ):
        super().__init__(message)
        self.fault_code = fault_code
        self.fault_message = fault_message
        self.last_request = last_request
        self.last_response = last_response


class SyncError(RetailexError):
    """The backend answered, but not with a usable result."""


class UnsupportedActionError(RetailexError):
    """The gateway does not know how to write this action."""


class GatewayError(RetailexError):
    """A gateway was initialised for an entity type it does not handle."""
