"""Mock PIX charge: builds a BR Code (EMV-MPM) "copia e cola" payload.

No PSP is contacted; the payload is well formed (TLV fields and CRC16) so it
can be fed to any BR Code parser, but the key is a random mock unless
``PIX_KEY`` is configured.
"""

from __future__ import annotations

import secrets
import unicodedata
from dataclasses import dataclass

from app.core.config import settings
from app.services.payment_providers import PaymentProviderError

GUI = "BR.GOV.BCB.PIX"
CURRENCY_BRL = "986"
MAX_FIELD_LENGTH = 99


@dataclass(frozen=True)
class PixCharge:
    recipient_name: str
    total: float
    order_number: str


def _ascii_upper(text: str, limit: int) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return text.upper().strip()[:limit]


def _field(tag: str, value: str) -> str:
    if len(value) > MAX_FIELD_LENGTH:
        raise PaymentProviderError(f"PIX field {tag} is too long")
    return f"{tag}{len(value):02d}{value}"


def crc16_ccitt(payload: str) -> str:
    """CRC16/CCITT-FALSE (poly 0x1021, init 0xFFFF) as four upper-case hex digits."""
    crc = 0xFFFF
    for byte in payload.encode("utf-8"):
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def build_br_code(charge: PixCharge, *, pix_key: str | None = None) -> str:
    if charge.total <= 0:
        raise PaymentProviderError("PIX charges need a positive amount")

    key = pix_key or settings.PIX_KEY or secrets.token_hex(16)
    merchant_name = _ascii_upper(settings.PIX_MERCHANT_NAME or charge.recipient_name, 25)
    merchant_city = _ascii_upper(settings.PIX_MERCHANT_CITY, 15)
    # El txid sólo admite alfanuméricos
    txid = "".join(ch for ch in charge.order_number if ch.isalnum())[:25] or "***"

    payload = "".join(
        [
            _field("00", "01"),
            _field("26", _field("00", GUI) + _field("01", key)),
            _field("52", "0000"),
            _field("53", CURRENCY_BRL),
            _field("54", f"{charge.total:.2f}"),
            _field("58", "BR"),
            _field("59", merchant_name),
            _field("60", merchant_city),
            _field("62", _field("05", txid)),
            "6304",
        ]
    )
    return payload + crc16_ccitt(payload)


def process_pix_payment(charge: PixCharge) -> dict:
    """Return the payment block stored on the order."""
    return {
        "method": "pix",
        "qr_code": build_br_code(charge),
        "transaction_id": f"PIX_{charge.order_number}",
    }
