from typing import Any, Optional

import attrs


@attrs.frozen
class BillingInfo:
    """Billing snapshot copied onto checkouts and orders; never updated in place."""

    name: str
    email: str
    phone: Optional[str] = None
    address_line: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return attrs.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Optional['BillingInfo']:
        if not data:
            return None
        fields = {f.name for f in attrs.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in fields})
