from core.payments.types import (
    Callback,
    CallbackOutcome,
    CrossPayConfig,
    InvoiceStatus,
    RejectionReason,
    SignedRequest,
)

__all__ = [
    "Callback",
    "CallbackOutcome",
    "CrossPayConfig",
    "InvoiceStatus",
    "RejectionReason",
    "SignedRequest",
]
