"""Customer gateway: pushes customers (and their addresses) to Retail Express."""

import logging
import random
import secrets
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .entities import Action, Entity, EntityStore
from .errors import SyncError, TransportError, UnsupportedActionError
from .events import EventCollector, LogLevel
from .gateway import ATTRIBUTE_NOT_DEFINED, AbstractGateway
from .models import CustomerResult, find_record
from .node import RetailexNode
from .soap_client import RetailexSoapClient

logger = logging.getLogger(__name__)


class CustomerGateway(AbstractGateway):
    """Writes customer records with billing and delivery details."""

    GATEWAY_ENTITY = "customer"
    GATEWAY_ENTITY_CODE = "cu"
    SUPPORTED_TYPES = ("customer", "address")

    CREATE_UPDATE_CALL = "CustomerCreateUpdate"
    PASSWORD_LENGTH = 16
    ALWAYS_WRITTEN = ("first_name", "last_name")
    NAME_ATTRIBUTES = ("first_name", "middle_name", "last_name")
    IGNORED_ATTRIBUTES = ("date_of_birth", "newslettersubscription")

    DEFAULT_ATTRIBUTE_MAPPING: Dict[str, Any] = {
        "DelAddress": ATTRIBUTE_NOT_DEFINED,
        "DelPostCode": ATTRIBUTE_NOT_DEFINED,
        "DelSuburb": ATTRIBUTE_NOT_DEFINED,
        "DelState": ATTRIBUTE_NOT_DEFINED,
        "ReceivesNews": 0,
    }
    BILLING_ATTRIBUTE_MAPPING = {
        "BillFirstName": "first_name",
        "BillLastName": "last_name",
        "BillCompany": "company",
        "BillPhone": "telephone",
        "BillPostCode": "postcode",
        "BillState": "region",
        "BillCountry": "country_code",
    }
    SHIPPING_ATTRIBUTE_MAPPING = {
        "DelCompany": "company",
        "DelPhone": "telephone",
        "DelPostCode": "postcode",
        "DelCountry": "country_code",
    }

    def __init__(
        self,
        node: RetailexNode,
        entity_store: EntityStore,
        events: Optional[EventCollector] = None,
        propagate_transport_errors: bool = False,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(node, entity_store, events, propagate_transport_errors)
        self._random = rng or secrets.SystemRandom()

    def retrieve_entities(self) -> int:
        # TODO: pull customers changed since the last checkpoint once the
        # backend exposes a customer export call for webstores.
        self.events.log(
            LogLevel.INFO,
            self._log_code("re_no"),
            "Customer retrieval not implemented yet.",
            {},
        )
        return 0

    def get_random_password(self) -> str:
        """Random password made of '-', digits and ASCII letters."""
        characters: List[str] = []
        while len(characters) < self.PASSWORD_LENGTH:
            code = self._random.randint(45, 122)
            if 45 < code < 48 or 57 < code < 65 or 90 < code < 97:
                continue
            characters.append(chr(code))
        return "".join(characters)

    def _soap_client(self) -> RetailexSoapClient:
        if self.soap is None:
            self.soap = self._node.get_soap_client()
        return self.soap

    @classmethod
    def _ordered_attributes(cls, attributes: Iterable[str]) -> List[str]:
        """Unique attributes, name parts moved to first/middle/last order."""
        unique = list(dict.fromkeys(attributes))
        others = [a for a in unique if a not in cls.NAME_ATTRIBUTES]
        names = [a for a in cls.NAME_ATTRIBUTES if a in unique]
        return names + others

    @staticmethod
    def _is_set(data: Dict[str, Any], key: str) -> bool:
        return data.get(key) is not None

    @staticmethod
    def _copy_attributes(data: Dict[str, Any], mapping: Dict[str, str], address: Entity):
        for remote_code, code in mapping.items():
            value = address.get_data(code)
            if value is not None and value != "":
                data[remote_code] = value

    @staticmethod
    def _full_name(address: Entity) -> Optional[str]:
        parts = (
            address.get_data("first_name", ""),
            address.get_data("middle_name", ""),
            address.get_data("last_name", ""),
        )
        name = " ".join(str(part).strip() for part in parts if part and str(part).strip())
        return name or ATTRIBUTE_NOT_DEFINED

    def build_payload(
        self, entity: Entity, attributes: Iterable[str]
    ) -> Tuple[Dict[str, Any], Optional[Entity], Optional[Entity]]:
        """Assemble the Customer record for a create.

        Returns:
            The payload plus the billing and shipping addresses it was built
            from (after the billing/shipping fallback).
        """
        data = dict(self.DEFAULT_ATTRIBUTE_MAPPING)
        data["Password"] = self.get_random_password()
        data["BillEmail"] = entity.get_unique_id()

        billing_address = entity.resolve("billing_address", "address")
        shipping_address = entity.resolve("shipping_address", "address")

        if billing_address is None and shipping_address is not None:
            billing_address = shipping_address
        elif billing_address is not None and shipping_address is None:
            shipping_address = billing_address

        if billing_address is not None:
            data["BillAddress"] = self.get_address(billing_address)
            data["BillAddress2"] = self.get_address2(billing_address)
            data["BillSuburb"] = self.get_suburb(billing_address)
            self._copy_attributes(data, self.BILLING_ATTRIBUTE_MAPPING, billing_address)

        if shipping_address is not None:
            data["DelName"] = self._full_name(shipping_address)
            data["DelAddress"] = self.get_address(shipping_address)
            data["DelAddress2"] = self.get_address2(shipping_address)
            data["DelSuburb"] = self.get_suburb(shipping_address)
            data["DelState"] = self.get_state(shipping_address)
            self._copy_attributes(data, self.SHIPPING_ATTRIBUTE_MAPPING, shipping_address)

        delivery_name = ""
        for attribute in attributes:
            value = entity.get_data(attribute)
            text = "" if value is None else str(value)

            if attribute == "enable_newsletter":
                data["ReceivesNews"] = 1 if value in (1, "1") else 0
            elif attribute == "first_name":
                if not self._is_set(data, "BillFirstName"):
                    data["BillFirstName"] = value
                if not self._is_set(data, "DelName"):
                    delivery_name = f"{text} {delivery_name}".strip()
            elif attribute == "middle_name":
                if not self._is_set(data, "DelName"):
                    delivery_name = f"{delivery_name} {text}".strip()
            elif attribute == "last_name":
                if not self._is_set(data, "BillLastName"):
                    data["BillLastName"] = value
                if not self._is_set(data, "DelName"):
                    data["DelName"] = f"{delivery_name} {text}".strip() or ATTRIBUTE_NOT_DEFINED
            elif attribute in self.IGNORED_ATTRIBUTES:
                pass
            else:
                logger.debug(f"Unsupported customer attribute {attribute} not written to Retailex")

        return data, billing_address, shipping_address

    def write_updates(self, entity: Entity, attributes: Iterable[str]) -> bool:
        """Create or update the customer on Retail Express.

        Address entities are written through their parent customer.

        Returns:
            True once the customer was written (and linked, for a create).
            Failures are logged with the attempted payload and reported as False.
        """
        entity_type = entity.type_str
        attributes = self._ordered_attributes(list(attributes) + list(self.ALWAYS_WRITTEN))

        if entity_type == "address":
            parent = entity.get_parent()
            if parent is None:
                self.events.log(
                    LogLevel.ERROR,
                    self._log_code("wr_adderr"),
                    f"Error creating/updating address {entity.get_unique_id()} on Retailex: "
                    "address has no parent customer.",
                    {"address": entity.to_log_dict()},
                )
                return False
            entity = parent
            attributes = []

        log_data: Dict[str, Any] = {
            "type": entity_type,
            "customer": entity.to_log_dict(),
            "attributes": attributes,
        }
        is_create = True
        remote_id = None

        try:
            data, billing_address, shipping_address = self.build_payload(entity, attributes)
            log_data["billing"] = billing_address.to_log_dict() if billing_address else None
            log_data["shipping"] = shipping_address.to_log_dict() if shipping_address else None

            known_id = self.entity_store.get_local_id(self.node_id, entity)
            if known_id is not None:
                is_create = False
                data["CustomerId"] = known_id
                data.pop("Password", None)
                # Only a changed opt-in may overwrite the remote subscription
                if "enable_newsletter" not in attributes:
                    data.pop("ReceivesNews", None)
            log_data["data"] = data

            call = self.CREATE_UPDATE_CALL
            response = self._soap_client().call(
                call, {"CustomerXML": {"Customers": {"Customer": data}}}
            )
            log_data["response"] = response

            if not response:
                raise SyncError(f"No valid response on {call}")

            record = find_record(response, "Customer")
            if record is None:
                raise SyncError(f"Response on {call} did not contain a Customer record")

            result = CustomerResult.model_validate(record)
            if not result.is_success:
                raise SyncError(f"{call} was not successful: {result.message or result.result}")
            if result.customer_id not in (None, ""):
                remote_id = result.customer_id

        except TransportError as e:
            self._log_write_error(e, log_data)
            if self.propagate_transport_errors:
                raise
            return False
        except Exception as e:
            self._log_write_error(e, log_data)
            return False

        if not is_create:
            return True

        if remote_id is None:
            self.events.log(
                LogLevel.ERROR,
                self._log_code("wr_locerr"),
                f"Error creating customer in Retailex ({entity.get_unique_id()})! "
                "Response did not contain a local id.",
                log_data,
            )
            return False

        self.entity_store.link_entity(self.node_id, entity, remote_id)
        self.events.log(
            LogLevel.INFO,
            self._log_code("wr_link"),
            f"Created customer {entity.get_unique_id()} in Retailex as {remote_id}.",
            {"customer": entity.get_unique_id(), "remote_id": remote_id},
        )
        return True

    def _log_write_error(self, error: Exception, log_data: Dict[str, Any]):
        self.events.log(
            LogLevel.ERROR,
            self._log_code("wr_err"),
            f"Error on {self.CREATE_UPDATE_CALL}: {error}",
            log_data,
        )

    def write_action(self, action: Action) -> bool:
        """Write a non-attribute action. Only ``delete`` is handled.

        Raises:
            UnsupportedActionError: For other action types, or when no delete
                operation is configured for the node.
        """
        if action.type != "delete":
            raise UnsupportedActionError(
                f"Unsupported action type {action.type} for Retailex customers."
            )

        call = self._node.config.customer_delete_call
        if not call:
            raise UnsupportedActionError(
                "Customer deletion is not configured for this Retailex node."
            )

        unique_id = action.entity.get_unique_id()
        self._soap_client().call(call, [unique_id])
        self.events.log(
            LogLevel.INFO,
            self._log_code("wa_del"),
            f"Deleted customer {unique_id} on Retailex.",
            {"call": call, "customer": unique_id},
        )
        return True
