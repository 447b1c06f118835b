from typing import Optional

import attrs

from src.service.ticket_lifecycle.domain.enum.ticket_format import CredentialFormat


@attrs.frozen
class IssuedCredential:
    """Machine-readable payload printed or stored on a ticket."""

    credential_format: CredentialFormat
    payload: str
    validation_key: Optional[str] = None
