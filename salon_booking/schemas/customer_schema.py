"""Client contact data used for notification text."""

import re
from typing import Optional

from pydantic import BaseModel, field_validator


class ClientContact(BaseModel):
    """Human-readable identity of a registered or unregistered client.

    Phones are kept as digits with an optional leading ``+``, so
    ``"0888 123 456"`` and ``"0888-123-456"`` compare equal.
    """
    display_name: str
    phone: Optional[str] = None

    @field_validator("display_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("phone")
    @classmethod
    def _digits_only(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip()
        digits = re.sub(r"\D", "", value)
        return "+" + digits if value.startswith("+") else digits
