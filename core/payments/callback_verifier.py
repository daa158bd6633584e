from __future__ import annotations

import logging
import time
from typing import Callable

from core.currencies import format_amount, normalize_currency, parse_amount
from core.payments import signature
from core.payments.contracts import AuditLog, InvoiceStore
from core.payments.types import (
    OPEN_STATUSES,
    Callback,
    CallbackOutcome,
    CrossPayConfig,
    InvoiceStatus,
    RejectionReason,
)
from schemas.invoice_schema import AuditEventCreate, InvoiceOut

logger = logging.getLogger(__name__)


def _epoch() -> int:
    return int(time.time())


class CallbackVerifier:
    """
    Authenticates a CrossPay result callback and applies it to the invoice.

    The callback hash only binds the invoice id, so amount and currency are
    always checked against the stored invoice before any transition. Status
    changes go through the store's compare-and-set; a paid invoice is final.
    """

    def __init__(
        self,
        *,
        config: CrossPayConfig,
        store: InvoiceStore,
        audit_log: AuditLog,
        clock: Callable[[], int] = _epoch,
    ) -> None:
        self._config = config
        self._store = store
        self._audit_log = audit_log
        self._clock = clock

    async def handle(self, callback: Callback) -> CallbackOutcome:
        outcome, invoice = await self._evaluate(callback)
        if outcome.accepted:
            logger.info(
                "Callback accepted for invoice %s: status=%s replay=%s",
                outcome.invoice_id,
                outcome.status.value if outcome.status else None,
                outcome.replay,
            )
        else:
            logger.warning(
                "Callback rejected for invoice %s: %s",
                outcome.invoice_id,
                outcome.reason.value if outcome.reason else None,
            )
        await self._record(callback, invoice, outcome)
        return outcome

    async def _evaluate(self, callback: Callback) -> tuple[CallbackOutcome, InvoiceOut | None]:
        invoice = await self._store.get_by_id(callback.invoice_id) if callback.invoice_id else None
        if invoice is None:
            return CallbackOutcome.reject(callback.invoice_id, RejectionReason.UNKNOWN_INVOICE), None

        if not signature.verify_callback_hash(callback.invoice_id, self._config.api_key, callback.hash):
            return CallbackOutcome.reject(callback.invoice_id, RejectionReason.HASH_MISMATCH, invoice.status), invoice

        if not self._matches_invoice(callback, invoice):
            return CallbackOutcome.reject(callback.invoice_id, RejectionReason.DATA_MISMATCH, invoice.status), invoice

        if invoice.status == InvoiceStatus.PAID:
            return CallbackOutcome.accept(invoice.invoice_id, InvoiceStatus.PAID, replay=True), invoice

        now = self._clock()
        if callback.is_paid:
            updated = await self._store.compare_and_set(
                invoice.invoice_id,
                OPEN_STATUSES,
                {
                    "status": InvoiceStatus.PAID.value,
                    "paid_at": now,
                    "updated_at": now,
                    "external_reference": callback.external_reference,
                },
            )
        else:
            if invoice.status == InvoiceStatus.FAILED:
                return CallbackOutcome.accept(invoice.invoice_id, InvoiceStatus.FAILED, replay=True), invoice
            updated = await self._store.compare_and_set(
                invoice.invoice_id,
                OPEN_STATUSES,
                {
                    "status": InvoiceStatus.FAILED.value,
                    "failed_at": now,
                    "updated_at": now,
                },
            )

        if updated is None:
            return await self._resolve_conflict(callback, invoice)
        return CallbackOutcome.accept(updated.invoice_id, updated.status), updated

    async def _resolve_conflict(
        self,
        callback: Callback,
        stale: InvoiceOut,
    ) -> tuple[CallbackOutcome, InvoiceOut | None]:
        # Another delivery won the compare-and-set; report against what it wrote.
        current = await self._store.get_by_id(callback.invoice_id) or stale
        target = InvoiceStatus.PAID if callback.is_paid else InvoiceStatus.FAILED
        if current.status == InvoiceStatus.PAID or current.status == target:
            return CallbackOutcome.accept(current.invoice_id, current.status, replay=True), current
        return (
            CallbackOutcome.reject(current.invoice_id, RejectionReason.INVALID_TRANSITION, current.status),
            current,
        )

    def _matches_invoice(self, callback: Callback, invoice: InvoiceOut) -> bool:
        received_amount = parse_amount(callback.amount)
        received_currency = normalize_currency(callback.currency)
        amount_ok = received_amount is not None and received_amount == invoice.amount
        currency_ok = received_currency == invoice.currency
        if not (amount_ok and currency_ok):
            logger.warning(
                "Callback data mismatch for invoice %s: received %s %s, stored %s %s",
                invoice.invoice_id,
                callback.amount,
                callback.currency,
                format_amount(invoice.amount),
                invoice.currency,
            )
        return amount_ok and currency_ok

    async def _record(self, callback: Callback, invoice: InvoiceOut | None, outcome: CallbackOutcome) -> None:
        event = AuditEventCreate(
            invoice_id=callback.invoice_id,
            accepted=outcome.accepted,
            reason=outcome.reason,
            replay=outcome.replay,
            is_paid=callback.is_paid,
            amount=callback.amount,
            currency=callback.currency,
            expected_amount=format_amount(invoice.amount) if invoice is not None else None,
            expected_currency=invoice.currency if invoice is not None else None,
            status=outcome.status,
            external_reference=callback.external_reference,
            created_at=self._clock(),
        )
        try:
            await self._audit_log.append(event)
        except Exception:
            # The transition has already been committed; a lost audit row must not undo it.
            logger.exception("Failed to append audit event for invoice %s", callback.invoice_id)
