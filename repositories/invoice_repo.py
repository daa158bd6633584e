from __future__ import annotations

from typing import Any, Collection

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from core.database import db
from core.errors import DuplicateInvoiceId, StoreReadFailure, StoreWriteFailure
from core.payments.types import InvoiceStatus
from schemas.invoice_schema import InvoiceCreate, InvoiceOut

_INVOICE_INDEXES_READY = False


async def _ensure_invoice_indexes() -> None:
    global _INVOICE_INDEXES_READY
    if _INVOICE_INDEXES_READY:
        return
    await db.invoices.create_index(
        "invoice_id",
        name="idx_invoice_id_unique",
        unique=True,
    )
    await db.invoices.create_index("status", name="idx_invoice_status")
    await db.invoices.create_index(
        "external_reference",
        name="idx_invoice_external_reference",
        sparse=True,
    )
    _INVOICE_INDEXES_READY = True


class MongoInvoiceStore:
    """Invoice store on the `invoices` collection; status changes are single conditional updates."""

    async def create(self, invoice: InvoiceCreate) -> InvoiceOut:
        try:
            await _ensure_invoice_indexes()
            result = await db.invoices.insert_one(invoice.model_dump(mode="json"))
            if not result.acknowledged:
                raise StoreWriteFailure(operation="create", details={"invoice_id": invoice.invoice_id})
            stored = await db.invoices.find_one({"_id": result.inserted_id})
        except DuplicateKeyError as err:
            raise DuplicateInvoiceId(invoice.invoice_id) from err
        except PyMongoError as err:
            raise StoreWriteFailure(operation="create", details={"invoice_id": invoice.invoice_id}) from err
        if stored is None:
            raise StoreWriteFailure(operation="create", details={"invoice_id": invoice.invoice_id})
        return InvoiceOut(**stored)

    async def get_by_id(self, invoice_id: str) -> InvoiceOut | None:
        try:
            await _ensure_invoice_indexes()
            row = await db.invoices.find_one({"invoice_id": invoice_id})
        except PyMongoError as err:
            raise StoreReadFailure(operation="get_by_id", details={"invoice_id": invoice_id}) from err
        if row is None:
            return None
        return InvoiceOut(**row)

    async def compare_and_set(
        self,
        invoice_id: str,
        expected_statuses: Collection[InvoiceStatus],
        new_fields: dict[str, Any],
    ) -> InvoiceOut | None:
        expected = [InvoiceStatus(status).value for status in expected_statuses]
        try:
            await _ensure_invoice_indexes()
            row = await db.invoices.find_one_and_update(
                {"invoice_id": invoice_id, "status": {"$in": expected}},
                {"$set": new_fields},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as err:
            raise StoreWriteFailure(operation="compare_and_set", details={"invoice_id": invoice_id}) from err
        if row is None:
            return None
        return InvoiceOut(**row)
