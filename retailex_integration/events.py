"""Event collector used by the SOAP client and the gateways.

Every event carries a short code (e.g. ``rex_soap_fault``), a human readable
message and a context dict. The default collector forwards events to the
standard ``logging`` module so they end up wherever the host application
routes its logs.
"""

import logging
from enum import IntEnum
from typing import Any, Dict, List, Optional, Protocol, Tuple

DEBUGEXTRA = 5
logging.addLevelName(DEBUGEXTRA, "DEBUGEXTRA")


class LogLevel(IntEnum):
    """Event levels, mapped onto stdlib logging levels."""

    DEBUGEXTRA = DEBUGEXTRA
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR


class EventCollector(Protocol):
    """Write-only sink for connector events."""

    def log(self, level: LogLevel, code: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...


class LoggingEventCollector:
    """Forward events to a stdlib logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("retailex_integration.events")

    def log(self, level: LogLevel, code: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        self._logger.log(
            int(level),
            f"[{code}] {message}",
            extra={"event_code": code, "event_data": data or {}},
        )


class RecordingEventCollector:
    """Keep events in memory, newest last."""

    def __init__(self):
        self.events: List[Tuple[LogLevel, str, str, Dict[str, Any]]] = []

    def log(self, level: LogLevel, code: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((level, code, message, data or {}))

    def codes(self) -> List[str]:
        return [code for _, code, _, _ in self.events]

    def find(self, code: str) -> List[Tuple[LogLevel, str, str, Dict[str, Any]]]:
        return [event for event in self.events if event[1] == code]
