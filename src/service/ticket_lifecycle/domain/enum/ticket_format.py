from enum import StrEnum


class TicketFormat(StrEnum):
    DIGITAL = 'digital'
    PHYSICAL = 'physical'


class CredentialFormat(StrEnum):
    QR_CODE = 'qr_code'
    NFC = 'nfc'
    RFID = 'rfid'
    BARCODE = 'barcode'


class TicketType(StrEnum):
    GENERAL = 'general'
    VIP = 'vip'
    PREMIUM = 'premium'
