from __future__ import annotations

from core.database import db
from schemas.invoice_schema import AuditEventCreate

_AUDIT_INDEXES_READY = False


async def _ensure_audit_indexes() -> None:
    global _AUDIT_INDEXES_READY
    if _AUDIT_INDEXES_READY:
        return
    await db.payment_audit_log.create_index(
        [("invoice_id", 1), ("created_at", 1)],
        name="idx_audit_invoice_created_at",
    )
    _AUDIT_INDEXES_READY = True


class MongoAuditLog:
    """Append-only callback log on `payment_audit_log`."""

    async def append(self, event: AuditEventCreate) -> None:
        await _ensure_audit_indexes()
        await db.payment_audit_log.insert_one(event.model_dump(mode="json"))
