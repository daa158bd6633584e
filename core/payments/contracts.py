from __future__ import annotations

from typing import Any, Collection, Protocol

from core.payments.types import InvoiceStatus
from schemas.invoice_schema import AuditEventCreate, InvoiceCreate, InvoiceOut


class InvoiceStore(Protocol):
    async def create(self, invoice: InvoiceCreate) -> InvoiceOut:
        """Persist a new invoice. Raises DuplicateInvoiceId if the id is taken."""
        ...

    async def get_by_id(self, invoice_id: str) -> InvoiceOut | None:
        ...

    async def compare_and_set(
        self,
        invoice_id: str,
        expected_statuses: Collection[InvoiceStatus],
        new_fields: dict[str, Any],
    ) -> InvoiceOut | None:
        """
        Atomically apply ``new_fields`` only while the invoice status is one
        of ``expected_statuses``. Returns the updated invoice, or None on
        conflict.
        """
        ...


class AuditLog(Protocol):
    async def append(self, event: AuditEventCreate) -> None:
        ...
