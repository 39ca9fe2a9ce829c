"""Configuration management for the Retail Express connector."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_WSDL_PATH = "dotnet/admin/webservices/v2/webstore/service.asmx"
DEFAULT_EXPIRY_MARKERS = ("session expired", "try to relogin")


@dataclass
class RetailexConfig:
    """Configuration for one Retail Express node."""

    url: str
    client_id: str = ""
    username: str = ""
    password: str = ""
    wsdl: str = ""
    node_id: int = 1
    timeout: float = 30.0
    expiry_markers: Tuple[str, ...] = field(default=DEFAULT_EXPIRY_MARKERS)
    customer_delete_call: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "RetailexConfig":
        """Load configuration from environment variables.

        Args:
            env_file: Optional path to .env file. If not provided, looks for
                     .env in the retailex_integration directory.

        Returns:
            RetailexConfig instance with loaded configuration.

        Raises:
            ConfigurationError: If the service URL is missing or a numeric
                value cannot be parsed. Missing credentials are allowed here,
                they are reported when the SOAP session is initialised.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            base_path = Path(__file__).parent
            env_path = base_path / ".env"
            if env_path.exists():
                load_dotenv(env_path)

        url = os.getenv("RETAILEX_URL")
        if not url:
            raise ConfigurationError("Missing required environment variable: RETAILEX_URL")

        markers = os.getenv("RETAILEX_EXPIRY_MARKERS")
        if markers:
            expiry_markers = tuple(m.strip() for m in markers.split(",") if m.strip())
        else:
            expiry_markers = DEFAULT_EXPIRY_MARKERS

        try:
            node_id = int(os.getenv("RETAILEX_NODE_ID", "1"))
            timeout = float(os.getenv("RETAILEX_TIMEOUT", "30"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric Retail Express setting: {e}") from e

        return cls(
            url=url,
            client_id=os.getenv("RETAILEX_CLIENT_ID", ""),
            username=os.getenv("RETAILEX_USERNAME", ""),
            password=os.getenv("RETAILEX_PASSWORD", ""),
            wsdl=os.getenv("RETAILEX_WSDL", ""),
            node_id=node_id,
            timeout=timeout,
            expiry_markers=expiry_markers,
            customer_delete_call=os.getenv("RETAILEX_CUSTOMER_DELETE_CALL") or None,
        )

    @property
    def service_url(self) -> str:
        """Get the SOAP service endpoint URL."""
        path = self.wsdl.strip().lstrip("/") or DEFAULT_WSDL_PATH
        return f"{self.url.strip().rstrip('/')}/{path}"

    @property
    def has_credentials(self) -> bool:
        """Check that client id, username and password are all present."""
        return bool(self.client_id and self.username and self.password)
