"""Retail Express SOAP session client.

Owns the authenticated transport for one node, re-authenticates once when the
backend reports an expired session and converts every response into plain
dicts and lists.
"""

import dataclasses
import logging
import traceback
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel

from .config import DEFAULT_EXPIRY_MARKERS, RetailexConfig
from .errors import AuthenticationError, ConfigurationError, TransportError
from .events import EventCollector, LoggingEventCollector, LogLevel
from .models import ClientHeader
from .transport import SoapFault, SoapTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, ClientHeader, float], SoapTransport]


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    AUTHENTICATED = "authenticated"
    FAULTED = "faulted"


def normalize_response(value: Any) -> Any:
    """Recursively turn structured response values into dicts and lists.

    Pydantic models, dataclasses and attribute objects become dicts keyed by
    field name. Scalars are returned unchanged, so plain trees come back equal.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump()
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    elif hasattr(value, "__dict__") and not isinstance(value, type):
        value = dict(vars(value))

    if isinstance(value, dict):
        return {key: normalize_response(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_response(item) for item in value]
    return value


def prepare_payload(data: Any) -> Any:
    """Coerce call data into a mapping or a sequence."""
    if isinstance(data, (dict, list, tuple)):
        return data
    if isinstance(data, BaseModel) or dataclasses.is_dataclass(data) or hasattr(data, "__dict__"):
        return normalize_response(data)
    return [data]


def is_expiry_fault(fault: SoapFault, markers=DEFAULT_EXPIRY_MARKERS) -> bool:
    """Check whether a fault asks for a new login."""
    message = (fault.message or "").lower()
    return any(marker.lower() in message for marker in markers)


class RetailexSoapClient:
    """Session-aware SOAP client for one Retail Express node."""

    def __init__(
        self,
        events: Optional[EventCollector] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """Initialize the client.

        Args:
            events: Event collector. Defaults to forwarding to stdlib logging.
            transport_factory: Builds the transport from service URL, header and
                timeout. Defaults to ``SoapTransport``.
        """
        self.events = events or LoggingEventCollector()
        self._transport_factory = transport_factory or SoapTransport
        self._config: Optional[RetailexConfig] = None
        self._transport: Optional[SoapTransport] = None
        self._last_transport: Optional[SoapTransport] = None
        self.state = SessionState.UNINITIALIZED

    def close(self):
        """Drop the session and release the HTTP connection."""
        self._discard_transport()
        if self.state is SessionState.AUTHENTICATED:
            self.state = SessionState.UNINITIALIZED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def transport(self) -> Optional[SoapTransport]:
        return self._transport

    @property
    def expiry_markers(self):
        if self._config is None:
            return DEFAULT_EXPIRY_MARKERS
        return self._config.expiry_markers

    def init(self, config: Optional[RetailexConfig]) -> bool:
        """Set up the SOAP API for a node and log in.

        Returns:
            Whether a session could be established. Missing credentials are
            logged and reported as ``False``.

        Raises:
            ConfigurationError: If no connection target is given, the API
                was already initialised or the session has faulted.
        """
        if config is None or not (config.url or "").strip():
            raise ConfigurationError("Retail Express connection target is not available on the SOAP API!")
        if self.state is SessionState.FAULTED:
            raise ConfigurationError("SOAP session could not be re-established; create a new client.")
        if self._transport is not None:
            raise ConfigurationError("Tried to initialize Soap API twice!")

        self._config = config
        return self._authenticate()

    def _authenticate(self) -> bool:
        config = self._config
        header = ClientHeader(
            client_id=config.client_id or "",
            username=config.username or "",
            password=config.password or "",
        )
        log_data = {"soap header": header.masked(), "url": config.service_url}

        if not config.has_credentials:
            log_data["error"] = AuthenticationError.__name__
            self.events.log(
                LogLevel.ERROR,
                "rex_isoap_fail",
                "SOAP initialisation failed: Please check client id, username and password.",
                log_data,
            )
            return False

        self._transport = self._transport_factory(config.service_url, header, config.timeout)
        self.state = SessionState.AUTHENTICATED
        self.events.log(LogLevel.INFO, "rex_isoap", "SOAP was successfully initialised.", log_data)
        return True

    def _discard_transport(self):
        if self._transport is not None:
            self._transport.close()
            self._last_transport = self._transport
        self._transport = None

    def _call(self, call: str, data: Any) -> Any:
        """One physical attempt, logged whatever the outcome."""
        try:
            result = self._transport.call(call, data)
        except SoapFault as fault:
            self.events.log(
                LogLevel.DEBUGEXTRA,
                "rex_soap_call_fault",
                f"SOAP fault with call {call}: {fault.message}",
                {"data": data, "code": fault.code},
            )
            raise

        self.events.log(
            LogLevel.DEBUGEXTRA,
            "rex_soap_call",
            f"Successful SOAP call {call}.",
            {"data": data, "result": result},
        )
        return result

    def call(self, call: str, data: Any) -> Any:
        """Make a SOAP call, re-authenticating once on an expired session.

        Args:
            call: The name of the operation.
            data: Payload as dicts/lists. Objects are flattened, scalars wrapped.

        Returns:
            The normalized response.

        Raises:
            TransportError: If the call failed and no retry was possible or the
                retry failed as well.
        """
        if not call:
            raise ValueError("SOAP call name must not be empty")
        if self.state is SessionState.FAULTED:
            raise ConfigurationError("SOAP session could not be re-established; create a new client.")

        data = prepare_payload(data)

        if self._transport is None:
            if self._config is None:
                raise ConfigurationError("SOAP API has not been initialised with a connection target.")
            if not self._authenticate():
                fault = SoapFault("Client", "authentication unavailable")
                raise self._fail(call, data, fault)

        retried = False
        while True:
            try:
                result = self._call(call, data)
                break
            except SoapFault as fault:
                if not retried and is_expiry_fault(fault, self.expiry_markers):
                    retried = True
                    logger.info(f"SOAP session expired during {call}, logging in again")
                    self._discard_transport()
                    self.state = SessionState.UNINITIALIZED
                    if self._authenticate():
                        continue
                    self.state = SessionState.FAULTED
                raise self._fail(call, data, fault) from fault

        result = normalize_response(result)
        self.events.log(
            LogLevel.DEBUG,
            "rex_soap_success",
            f"Successful soap call: {call}",
            {"call": call, "data": data, "result": result},
        )
        return result

    def _fail(self, call: str, data: Any, fault: SoapFault) -> TransportError:
        transport = self._transport or self._last_transport
        last_request = transport.last_request if transport is not None else None
        last_response = transport.last_response if transport is not None else None
        message = f"SOAP Fault with call {call}: {fault.message}"

        self.events.log(
            LogLevel.ERROR,
            "rex_soap_fault",
            message,
            {
                "data": data,
                "code": fault.code,
                "trace": "".join(traceback.format_exception(type(fault), fault, fault.__traceback__)),
                "request": last_request,
                "response": last_response,
            },
        )
        return TransportError(
            message,
            fault_code=fault.code,
            fault_message=fault.message,
            last_request=last_request,
            last_response=last_response,
        )
