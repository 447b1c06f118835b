"""
Ticket numbers, credentials and reference codes

Payload layouts are fixed because gate devices in the field parse them:

- QR: JSON ``{ticketNumber, eventId, userId, timestamp, nonce, format, validationKey}``
  where ``validationKey`` is the SHA-256 hex of the JSON without it, keys in
  that order, and ``nonce`` is 16 hex characters.
- NFC: Base64 of JSON ``{tn, eid, uid, ts, sig}``.
- RFID: hex of JSON ``{ticket, event, user, issued, checksum}``.
- Barcode: digits of the ticket number followed by the last 6 digits of now (ms).
"""

import base64
import hashlib
import secrets
import string
import zlib
from datetime import datetime
from typing import Callable
from uuid import UUID

import orjson

from src.service.ticket_lifecycle.domain.enum.ticket_format import CredentialFormat
from src.service.ticket_lifecycle.domain.value_object.issued_credential import IssuedCredential


_BASE36_ALPHABET = string.digits + string.ascii_uppercase


def to_millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def to_base36(value: int) -> str:
    if value == 0:
        return '0'
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


_QR_BASE_FIELDS = ('ticketNumber', 'eventId', 'userId', 'timestamp', 'nonce')


def _qr_validation_key(base: dict) -> str:
    # keys hashed in field order, as gate devices serialize them
    return hashlib.sha256(orjson.dumps(base)).hexdigest()


# ========== Identifiers ==========


def generate_ticket_number(now: datetime) -> str:
    return f'TKT-{to_millis(now)}-{secrets.token_hex(3).upper()}'


def generate_payment_reference(now: datetime) -> str:
    suffix = ''.join(secrets.choice(_BASE36_ALPHABET) for _ in range(6))
    return f'PAY-{to_millis(now)}-{suffix}'


def refund_payment_reference(refund_id: UUID, *, part: int = 0) -> str:
    """Credit reference; a refund spread over several payments numbers its later credits."""
    return f'REFUND-{refund_id}' if part == 0 else f'REFUND-{refund_id}-{part + 1}'


def generate_transfer_code(now: datetime) -> str:
    random_part = ''.join(
        secrets.choice(string.ascii_uppercase + string.digits) for _ in range(6)
    )
    return f'TRF{random_part}{to_base36(to_millis(now))}'


def generate_stream_access_token() -> str:
    return secrets.token_hex(32)


# ========== Credentials ==========


def build_qr_payload(
    *, ticket_number: str, event_id: UUID, user_id: UUID, now: datetime
) -> IssuedCredential:
    base = {
        'ticketNumber': ticket_number,
        'eventId': str(event_id),
        'userId': str(user_id),
        'timestamp': to_millis(now),
        'nonce': secrets.token_hex(8),
    }
    validation_key = _qr_validation_key(base)
    payload = {**base, 'format': str(CredentialFormat.QR_CODE), 'validationKey': validation_key}
    return IssuedCredential(
        credential_format=CredentialFormat.QR_CODE,
        payload=orjson.dumps(payload).decode(),
        validation_key=validation_key,
    )


def build_nfc_payload(
    *, ticket_number: str, event_id: UUID, user_id: UUID, now: datetime
) -> IssuedCredential:
    event_str, user_str = str(event_id), str(user_id)
    signature = hashlib.md5(f'{ticket_number}{event_str}{user_str}'.encode()).hexdigest()[:8]
    payload = {
        'tn': ticket_number,
        'eid': event_str[:8],
        'uid': user_str[:8],
        'ts': int(now.timestamp()),
        'sig': signature,
    }
    encoded = base64.b64encode(orjson.dumps(payload)).decode()
    return IssuedCredential(
        credential_format=CredentialFormat.NFC, payload=encoded, validation_key=signature
    )


def build_rfid_payload(
    *, ticket_number: str, event_id: UUID, user_id: UUID, now: datetime
) -> IssuedCredential:
    crc = zlib.crc32(f'{ticket_number}{event_id}{user_id}'.encode()) & 0xFFFFFFFF
    checksum = format(crc, '08x')
    payload = {
        'ticket': ticket_number,
        'event': str(event_id),
        'user': str(user_id),
        'issued': to_millis(now),
        'checksum': checksum,
    }
    return IssuedCredential(
        credential_format=CredentialFormat.RFID,
        payload=orjson.dumps(payload).hex(),
        validation_key=checksum,
    )


def build_barcode_payload(
    *, ticket_number: str, event_id: UUID, user_id: UUID, now: datetime
) -> IssuedCredential:
    digits = ''.join(ch for ch in ticket_number if ch.isdigit())
    return IssuedCredential(
        credential_format=CredentialFormat.BARCODE,
        payload=f'{digits}{str(to_millis(now))[-6:]}',
    )


_BUILDERS: dict[CredentialFormat, Callable[..., IssuedCredential]] = {
    CredentialFormat.QR_CODE: build_qr_payload,
    CredentialFormat.NFC: build_nfc_payload,
    CredentialFormat.RFID: build_rfid_payload,
    CredentialFormat.BARCODE: build_barcode_payload,
}


def build_credential(
    credential_format: CredentialFormat,
    *,
    ticket_number: str,
    event_id: UUID,
    user_id: UUID,
    now: datetime,
) -> IssuedCredential:
    return _BUILDERS[credential_format](
        ticket_number=ticket_number, event_id=event_id, user_id=user_id, now=now
    )


def verify_qr_payload(payload: str) -> bool:
    """Recompute the validation key of a presented QR payload."""
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError:
        return False
    if not isinstance(data, dict):
        return False
    expected = data.get('validationKey')
    base = {k: data.get(k) for k in _QR_BASE_FIELDS}
    return bool(expected) and _qr_validation_key(base) == expected
