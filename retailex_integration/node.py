"""Connector context for one Retail Express account."""

import logging
from typing import Optional

from .config import RetailexConfig
from .errors import AuthenticationError
from .events import EventCollector, LoggingEventCollector
from .soap_client import RetailexSoapClient, TransportFactory

logger = logging.getLogger(__name__)


class RetailexNode:
    """Holds the configuration and the SOAP session of one node."""

    def __init__(
        self,
        config: RetailexConfig,
        events: Optional[EventCollector] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.config = config
        self.events = events or LoggingEventCollector()
        self._transport_factory = transport_factory
        self._soap: Optional[RetailexSoapClient] = None

    @property
    def node_id(self) -> int:
        return self.config.node_id

    def get_soap_client(self) -> RetailexSoapClient:
        """Return the node's SOAP client, initialising the session on first use.

        Raises:
            AuthenticationError: If the credentials are incomplete.
        """
        if self._soap is None:
            soap = RetailexSoapClient(events=self.events, transport_factory=self._transport_factory)
            if not soap.init(self.config):
                raise AuthenticationError(
                    f"Retail Express node {self.node_id}: check client id, username and password."
                )
            self._soap = soap
            logger.info(f"Retail Express node {self.node_id} connected to {self.config.service_url}")
        return self._soap

    def close(self):
        if self._soap is not None:
            self._soap.close()
            self._soap = None
