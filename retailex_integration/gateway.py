"""Base gateway: lifecycle shared by all Retail Express entity gateways."""

import logging
from typing import Any, Iterable, List, Optional

from .entities import Action, Entity, EntityStore
from .errors import GatewayError
from .events import EventCollector, LogLevel
from .node import RetailexNode
from .soap_client import RetailexSoapClient

logger = logging.getLogger(__name__)

ATTRIBUTE_NOT_DEFINED = None


class AbstractGateway:
    """Pushes local entities of one type to Retail Express and pulls them back.

    Subclasses set ``GATEWAY_ENTITY``/``GATEWAY_ENTITY_CODE`` (used in event
    codes) and ``SUPPORTED_TYPES``, and implement ``retrieve_entities``,
    ``write_updates`` and ``write_action``.
    """

    GATEWAY_ENTITY = ""
    GATEWAY_ENTITY_CODE = ""
    SUPPORTED_TYPES: tuple = ()

    def __init__(
        self,
        node: RetailexNode,
        entity_store: EntityStore,
        events: Optional[EventCollector] = None,
        propagate_transport_errors: bool = False,
    ):
        self._node = node
        self.entity_store = entity_store
        self.events = events or node.events
        self.propagate_transport_errors = propagate_transport_errors
        self.entity_type: Optional[str] = None
        self.soap: Optional[RetailexSoapClient] = None

    @property
    def node_id(self) -> int:
        return self._node.node_id

    def _log_code(self, suffix: str) -> str:
        return f"rex_{self.GATEWAY_ENTITY_CODE}_{suffix}"

    def init(self, entity_type: str) -> bool:
        """Initialise the gateway for one entity type and open the node's session.

        Raises:
            GatewayError: If this gateway does not handle ``entity_type``.
            AuthenticationError: If the node has incomplete credentials.
        """
        if entity_type not in self.SUPPORTED_TYPES:
            raise GatewayError(f"Invalid entity type {entity_type} for this gateway")

        self.entity_type = entity_type
        self.soap = self._node.get_soap_client()
        self.events.log(
            LogLevel.DEBUG,
            self._log_code("init"),
            f"Initialised Retailex {self.GATEWAY_ENTITY} gateway.",
            {"entity_type": entity_type},
        )
        return True

    def retrieve(self) -> int:
        """Pull remote changes; returns the number of records processed."""
        count = self.retrieve_entities()
        logger.info(f"Retailex {self.GATEWAY_ENTITY} retrieval processed {count} record(s)")
        return count

    def retrieve_entities(self) -> int:
        raise NotImplementedError

    def write_updates(self, entity: Entity, attributes: Iterable[str]) -> bool:
        raise NotImplementedError

    def write_action(self, action: Action) -> bool:
        raise NotImplementedError

    # ── Address decomposition ───────────────────────────────────────────

    @staticmethod
    def _street_lines(address: Entity) -> List[str]:
        street = address.get_data("street", "") or ""
        if isinstance(street, (list, tuple)):
            lines = [str(line) for line in street]
        else:
            lines = str(street).splitlines()
        return [line.strip() for line in lines if line and line.strip()]

    def get_address(self, address: Entity) -> Any:
        """First street line, or ATTRIBUTE_NOT_DEFINED."""
        lines = self._street_lines(address)
        return lines[0] if lines else ATTRIBUTE_NOT_DEFINED

    def get_address2(self, address: Entity) -> Any:
        """Remaining street lines joined by commas, or ATTRIBUTE_NOT_DEFINED."""
        lines = self._street_lines(address)
        return ", ".join(lines[1:]) if len(lines) > 1 else ATTRIBUTE_NOT_DEFINED

    def get_suburb(self, address: Entity) -> Any:
        return address.get_data("suburb") or address.get_data("city") or ATTRIBUTE_NOT_DEFINED

    def get_state(self, address: Entity) -> Any:
        return address.get_data("region") or address.get_data("region_code") or ATTRIBUTE_NOT_DEFINED
