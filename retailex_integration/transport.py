"""SOAP 1.2 transport for the Retail Express webstore service.

Only the subset of SOAP the webstore service needs is covered: one operation
element per request, a ``ClientHeader`` with the credentials, and responses
parsed into ``SoapRecord`` attribute bags. Embedded XML documents returned as
the text of ``*Result`` elements are parsed as well.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Optional

import httpx

from .models import ClientHeader

logger = logging.getLogger(__name__)

SOAP_NAMESPACE = "http://retailexpress.com.au/"
SOAP_HEADER_NAME = "ClientHeader"
SOAP_ENVELOPE_NAMESPACE = "http://www.w3.org/2003/05/soap-envelope"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("soap", SOAP_ENVELOPE_NAMESPACE)
ET.register_namespace("xsi", XSI_NAMESPACE)
ET.register_namespace("rex", SOAP_NAMESPACE)


class SoapFault(Exception):
    """Fault returned by the SOAP service, or an HTTP failure reaching it."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class SoapRecord:
    """Structured value from a SOAP response, fields stored as attributes."""

    def __init__(self, **fields: Any):
        self.__dict__.update(fields)

    def __repr__(self) -> str:
        return f"SoapRecord({self.__dict__!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SoapRecord) and self.__dict__ == other.__dict__


def _qualified(tag: str) -> str:
    return f"{{{SOAP_NAMESPACE}}}{tag}"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _append_value(parent: ET.Element, tag: str, value: Any) -> None:
    if isinstance(value, (list, tuple)):
        for item in value:
            _append_value(parent, tag, item)
        return

    element = ET.SubElement(parent, _qualified(tag))
    if value is None:
        element.set(f"{{{XSI_NAMESPACE}}}nil", "true")
    elif isinstance(value, dict):
        for key, item in value.items():
            _append_value(element, str(key), item)
    elif isinstance(value, bool):
        element.text = "true" if value else "false"
    else:
        element.text = str(value)


def build_envelope(call: str, data: Any, header: ClientHeader) -> bytes:
    """Serialise one operation call into a SOAP 1.2 envelope."""
    envelope = ET.Element(f"{{{SOAP_ENVELOPE_NAMESPACE}}}Envelope")
    soap_header = ET.SubElement(envelope, f"{{{SOAP_ENVELOPE_NAMESPACE}}}Header")
    client_header = ET.SubElement(soap_header, _qualified(SOAP_HEADER_NAME))
    for key, value in header.model_dump(by_alias=True).items():
        _append_value(client_header, key, value)

    body = ET.SubElement(envelope, f"{{{SOAP_ENVELOPE_NAMESPACE}}}Body")
    operation = ET.SubElement(body, _qualified(call))
    if isinstance(data, dict):
        for key, value in data.items():
            _append_value(operation, str(key), value)
    else:
        # Positional arguments have no names without the WSDL
        for index, value in enumerate(data or []):
            if isinstance(value, dict):
                for key, item in value.items():
                    _append_value(operation, str(key), item)
            else:
                _append_value(operation, f"arg{index}", value)

    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


def parse_element(element: ET.Element) -> Any:
    """Convert an XML element into SoapRecords, lists and text.

    Leaf text is kept as sent. Element attributes become record fields; a leaf
    carrying attributes becomes a record with its text under ``_``.
    """
    attributes = {
        _local_name(key): value
        for key, value in element.attrib.items()
        if not key.startswith(f"{{{XSI_NAMESPACE}}}")
    }
    children = list(element)
    if not children:
        if element.get(f"{{{XSI_NAMESPACE}}}nil") == "true":
            return None
        text = element.text or ""
        stripped = text.strip()
        if stripped.startswith("<"):
            try:
                embedded = ET.fromstring(stripped)
            except ET.ParseError:
                pass
            else:
                return SoapRecord(**{_local_name(embedded.tag): parse_element(embedded)})
        value = text if stripped else None
        if attributes:
            return SoapRecord(_=value, **attributes)
        return value

    fields = dict(attributes)
    for child in children:
        name = _local_name(child.tag)
        value = parse_element(child)
        if name not in fields:
            fields[name] = value
        elif isinstance(fields[name], list):
            fields[name].append(value)
        else:
            fields[name] = [fields[name], value]
    return SoapRecord(**fields)


def _find_fault(body: ET.Element) -> Optional[SoapFault]:
    for child in body:
        if _local_name(child.tag) != "Fault":
            continue
        code = None
        message = None
        for element in child.iter():
            name = _local_name(element.tag)
            if name in ("Value", "faultcode") and code is None:
                code = (element.text or "").strip()
            elif name in ("Text", "faultstring") and message is None:
                message = (element.text or "").strip()
        return SoapFault(code or "Server", message or "Unknown SOAP fault")
    return None


class SoapTransport:
    """Synchronous SOAP transport bound to one service URL and credential header."""

    def __init__(
        self,
        url: str,
        header: ClientHeader,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.header = header
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self.last_request: Optional[str] = None
        self.last_response: Optional[str] = None

    def close(self):
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def call(self, call: str, data: Any) -> Any:
        """Send one operation and return the parsed ``<call>Response`` element.

        Raises:
            SoapFault: On a SOAP fault, an unexpected HTTP status or a
                network level error.
        """
        content = build_envelope(call, data, self.header)
        self.last_request = content.decode("utf-8")
        self.last_response = None

        headers = {
            "Content-Type": f'application/soap+xml; charset=utf-8; action="{SOAP_NAMESPACE}{call}"',
        }

        try:
            response = self._client.post(self.url, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise SoapFault("HTTP", f"Could not reach SOAP service: {e}") from e

        self.last_response = response.text
        logger.debug(f"SOAP {call} answered with status {response.status_code}")

        try:
            root = ET.fromstring(response.content) if response.content else None
        except ET.ParseError as e:
            if response.is_error:
                raise SoapFault("HTTP", f"HTTP {response.status_code} from SOAP service") from e
            raise SoapFault("Client", f"Malformed SOAP response: {e}") from e

        body = None
        if root is not None:
            body = next((el for el in root if _local_name(el.tag) == "Body"), None)

        if body is not None:
            fault = _find_fault(body)
            if fault is not None:
                raise fault

        if response.is_error:
            raise SoapFault("HTTP", f"HTTP {response.status_code} from SOAP service")

        if body is None:
            return None

        result = next(iter(body), None)
        if result is None:
            return None
        return parse_element(result)
