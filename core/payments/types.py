from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from core.settings import Settings

PAID_FLAG_VALUES = {"1", "true", "yes"}


class InvoiceStatus(str, Enum):
    CREATED = "created"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# Statuses a callback is still allowed to move out of.
OPEN_STATUSES: frozenset[InvoiceStatus] = frozenset({InvoiceStatus.CREATED, InvoiceStatus.PENDING})


class RejectionReason(str, Enum):
    UNKNOWN_INVOICE = "unknown_invoice"
    HASH_MISMATCH = "hash_mismatch"
    DATA_MISMATCH = "data_mismatch"
    INVALID_TRANSITION = "invalid_transition"


@dataclass(frozen=True)
class CrossPayConfig:
    account_id: str
    api_key: str
    base_url: str
    signing_secret: str
    return_url: str
    default_item_name: str = "Invoice payment"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CrossPayConfig":
        return cls(
            account_id=settings.crosspay_account_id,
            api_key=settings.crosspay_api_key,
            base_url=settings.crosspay_base_url,
            signing_secret=settings.crosspay_signing_secret,
            return_url=settings.crosspay_return_url,
            default_item_name=settings.crosspay_default_item_name,
        )


@dataclass(frozen=True)
class SignedRequest:
    invoice_id: str
    verification_token: str
    params: dict[str, str] = field(default_factory=dict)

    def to_url(self, base_url: str) -> str:
        scheme, netloc, path, query, fragment = urlsplit(base_url)
        merged = parse_qsl(query, keep_blank_values=True) + list(self.params.items())
        return urlunsplit((scheme, netloc, path, urlencode(merged), fragment))


@dataclass(frozen=True)
class Callback:
    invoice_id: str
    is_paid: bool
    amount: str
    currency: str
    hash: str
    external_reference: str | None = None

    @staticmethod
    def parse_paid_flag(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value or "").strip().lower() in PAID_FLAG_VALUES

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "Callback":
        return cls(
            invoice_id=str(params.get("invoice_id") or "").strip(),
            is_paid=cls.parse_paid_flag(params.get("is_paid")),
            amount=str(params.get("amount") or "").strip(),
            currency=str(params.get("currency") or "").strip(),
            hash=str(params.get("hash") or "").strip(),
            external_reference=str(params.get("crosspay_invoice_id") or "").strip() or None,
        )


@dataclass(frozen=True)
class CallbackOutcome:
    accepted: bool
    invoice_id: str
    status: InvoiceStatus | None = None
    reason: RejectionReason | None = None
    replay: bool = False

    @classmethod
    def accept(cls, invoice_id: str, status: InvoiceStatus, *, replay: bool = False) -> "CallbackOutcome":
        return cls(accepted=True, invoice_id=invoice_id, status=status, replay=replay)

    @classmethod
    def reject(
        cls,
        invoice_id: str,
        reason: RejectionReason,
        status: InvoiceStatus | None = None,
    ) -> "CallbackOutcome":
        return cls(accepted=False, invoice_id=invoice_id, status=status, reason=reason)
