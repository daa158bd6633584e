from __future__ import annotations

import json
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from core.currencies import (
    CENT,
    SUPPORTED_CURRENCIES,
    format_amount,
    has_cent_precision,
    is_supported_currency,
    normalize_currency,
)
from core.errors import validation_failed
from core.payments import signature
from core.payments.contracts import InvoiceStore
from core.payments.invoice_ids import InvoiceIdGenerator
from core.payments.types import CrossPayConfig, InvoiceStatus, SignedRequest
from core.validation_errors import format_validation_error_details
from schemas.invoice_schema import CheckoutIn, InvoiceCreate, InvoiceInfoRow, InvoiceItem, InvoiceOut

logger = logging.getLogger(__name__)


def _epoch() -> int:
    return int(time.time())


class PaymentRequestBuilder:
    def __init__(
        self,
        *,
        config: CrossPayConfig,
        store: InvoiceStore,
        id_generator: InvoiceIdGenerator,
        clock: Callable[[], int] = _epoch,
    ) -> None:
        self._config = config
        self._store = store
        self._id_generator = id_generator
        self._clock = clock

    async def build(
        self,
        *,
        payer_name: str,
        payer_email: str,
        payer_phone: str,
        currency: str,
        amount: Decimal | str,
        items: Iterable[InvoiceItem | dict[str, Any]] | None = None,
        info: Iterable[InvoiceInfoRow | dict[str, Any]] | None = None,
    ) -> str:
        signed = await self.prepare(
            payer_name=payer_name,
            payer_email=payer_email,
            payer_phone=payer_phone,
            currency=currency,
            amount=amount,
            items=items,
            info=info,
        )
        return signed.to_url(self._config.base_url)

    async def prepare(
        self,
        *,
        payer_name: str,
        payer_email: str,
        payer_phone: str,
        currency: str,
        amount: Decimal | str,
        items: Iterable[InvoiceItem | dict[str, Any]] | None = None,
        info: Iterable[InvoiceInfoRow | dict[str, Any]] | None = None,
    ) -> SignedRequest:
        checkout = self._validate(
            {
                "payer_name": payer_name,
                "payer_email": payer_email,
                "payer_phone": payer_phone,
                "currency": currency,
                "amount": amount,
                "items": list(items or []),
                "info": list(info or []),
            }
        )

        invoice = await self._id_generator.allocate(
            lambda invoice_id: self._store.create(self._new_invoice(invoice_id, checkout))
        )
        logger.info("Invoice %s created for %s %s", invoice.invoice_id, invoice.amount, invoice.currency)

        total = format_amount(invoice.amount)
        token = signature.request_token(invoice.invoice_id, total, invoice.currency, self._config.signing_secret)
        params = {
            "account": self._config.account_id,
            "invoice_id": invoice.invoice_id,
            "apikey": self._config.api_key,
            "total": total,
            "currency": invoice.currency,
            "inv_details": json.dumps(self._invoice_details(invoice), separators=(",", ":")),
            "return_url": self._config.return_url,
            "email": invoice.payer_email,
            "mobile": invoice.payer_phone,
            "name": invoice.payer_name,
            "verification_token": token,
        }
        return SignedRequest(invoice_id=invoice.invoice_id, verification_token=token, params=params)

    def _validate(self, raw: dict[str, Any]) -> CheckoutIn:
        try:
            checkout = CheckoutIn.model_validate(raw)
        except ValidationError as err:
            raise validation_failed(
                "Invalid checkout request",
                details=format_validation_error_details(
                    err.errors(include_url=False, include_context=False, include_input=False),
                    default_location="checkout",
                ),
            ) from err

        if not checkout.amount.is_finite() or not has_cent_precision(checkout.amount):
            raise validation_failed(
                "Amount must be a positive value with at most two decimal places",
                details={"amount": str(checkout.amount)},
            )

        currency = normalize_currency(checkout.currency)
        if not is_supported_currency(currency):
            raise validation_failed(
                "Unsupported currency",
                details={"currency": checkout.currency, "supported": list(SUPPORTED_CURRENCIES)},
            )

        if checkout.items:
            items_total = sum((item.total_price for item in checkout.items), Decimal("0"))
            if items_total != checkout.amount:
                raise validation_failed(
                    "Line items do not add up to the invoice amount",
                    details={"amount": format_amount(checkout.amount), "items_total": format_amount(items_total)},
                )

        return checkout.model_copy(
            update={
                "currency": currency,
                "amount": checkout.amount.quantize(CENT),
                "payer_name": checkout.payer_name.strip(),
            }
        )

    def _new_invoice(self, invoice_id: str, checkout: CheckoutIn) -> InvoiceCreate:
        now = self._clock()
        items = checkout.items or [
            InvoiceItem(name=self._config.default_item_name, quantity=1, unit_price=checkout.amount)
        ]
        return InvoiceCreate(
            invoice_id=invoice_id,
            amount=checkout.amount,
            currency=checkout.currency,
            payer_name=checkout.payer_name,
            payer_email=str(checkout.payer_email),
            payer_phone=checkout.payer_phone,
            items=items,
            info=checkout.info,
            status=InvoiceStatus.CREATED,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _invoice_details(invoice: InvoiceOut) -> dict[str, Any]:
        return {
            "inv_items": [
                {
                    "name": item.name,
                    "quantity": str(item.quantity),
                    "unitPrice": format_amount(item.unit_price),
                    "totalPrice": format_amount(item.total_price),
                    "currency": invoice.currency,
                }
                for item in invoice.items
            ],
            "inv_info": [{"row_title": row.title, "row_value": row.value} for row in invoice.info],
            "user": {"userName": invoice.payer_name},
        }
