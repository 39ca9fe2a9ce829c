"""Data models for the Retail Express integration."""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class ClientHeader(BaseModel):
    """Retail Express SOAP ``ClientHeader`` carrying the session credentials."""

    client_id: str = Field(alias="clientId")
    username: str = Field(alias="username")
    password: str = Field(alias="password")

    class Config:
        populate_by_name = True

    def masked(self) -> Dict[str, str]:
        """Header values safe for logging."""
        return {
            "clientId": self.client_id,
            "username": self.username,
            "password": "***" if self.password else "",
        }


class CustomerResult(BaseModel):
    """One ``Customer`` record from a CustomerCreateUpdate response."""

    result: Optional[str] = Field(default=None, alias="Result")
    customer_id: Optional[Union[int, str]] = Field(default=None, alias="CustomerId")
    message: Optional[str] = Field(default=None, alias="Message")

    class Config:
        populate_by_name = True
        extra = "allow"

    @property
    def is_success(self) -> bool:
        return self.result == "Success"


def find_record(tree: Any, tag: str) -> Optional[Dict[str, Any]]:
    """Return the first record stored under ``tag``, searching depth first.

    A list under ``tag`` yields its first dict element.
    """
    if isinstance(tree, dict):
        if tag in tree:
            value = tree[tag]
            if isinstance(value, list):
                value = next((item for item in value if isinstance(item, dict)), None)
            if isinstance(value, dict):
                return value
        for value in tree.values():
            found = find_record(value, tag)
            if found is not None:
                return found
    elif isinstance(tree, list):
        for value in tree:
            found = find_record(value, tag)
            if found is not None:
                return found
    return None
