from __future__ import annotations

import time
from typing import Any, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from core.errors import AppException, ErrorCode, callback_rejected, resource_not_found
from core.payments.manager import CrossPayGateway
from core.payments.types import Callback, CallbackOutcome, InvoiceStatus
from core.settings import get_settings
from schemas.invoice_schema import CheckoutIn, CheckoutOut, InvoiceStatusOut


def _epoch() -> int:
    return int(time.time())


def _get_gateway() -> CrossPayGateway:
    try:
        return CrossPayGateway.get_instance()
    except RuntimeError as err:
        raise AppException(
            status_code=503,
            code=ErrorCode.INTERNAL_ERROR,
            message="Payment gateway is not configured",
            details=str(err),
        ) from err


async def start_checkout(*, payload: CheckoutIn) -> CheckoutOut:
    gateway = _get_gateway()
    signed = await gateway.request_builder.prepare(
        payer_name=payload.payer_name,
        payer_email=str(payload.payer_email),
        payer_phone=payload.payer_phone,
        currency=payload.currency,
        amount=payload.amount,
        items=payload.items,
        info=payload.info,
    )

    # The payer is handed to the processor from here on.
    now = _epoch()
    await gateway.store.compare_and_set(
        signed.invoice_id,
        {InvoiceStatus.CREATED},
        {"status": InvoiceStatus.PENDING.value, "updated_at": now},
    )
    return CheckoutOut(invoice_id=signed.invoice_id, redirect_url=signed.to_url(gateway.config.base_url))


async def handle_callback(*, params: Mapping[str, Any]) -> CallbackOutcome:
    gateway = _get_gateway()
    outcome = await gateway.callback_verifier.handle(Callback.from_params(params))
    if not outcome.accepted:
        raise callback_rejected(
            outcome.reason.value if outcome.reason else "unknown",
            invoice_id=outcome.invoice_id or None,
        )
    return outcome


def payer_redirect_url(outcome: CallbackOutcome) -> str | None:
    settings = get_settings()
    target = settings.payment_success_page_url if outcome.status == InvoiceStatus.PAID else settings.payment_failure_page_url
    if not target:
        return None
    scheme, netloc, path, query, fragment = urlsplit(target)
    params = parse_qsl(query, keep_blank_values=True) + [("invoice_id", outcome.invoice_id)]
    return urlunsplit((scheme, netloc, path, urlencode(params), fragment))


async def get_invoice_status(*, invoice_id: str) -> InvoiceStatusOut:
    invoice = await _get_gateway().store.get_by_id(invoice_id)
    if invoice is None:
        raise resource_not_found("Invoice", invoice_id)
    return InvoiceStatusOut(
        invoice_id=invoice.invoice_id,
        amount=invoice.amount,
        currency=invoice.currency,
        status=invoice.status,
        created_at=invoice.created_at,
        paid_at=invoice.paid_at,
    )
