from __future__ import annotations

import pytest

from core.payments.types import CrossPayConfig
from tests.fakes import InMemoryInvoiceStore, RecordingAuditLog


@pytest.fixture
def crosspay_config() -> CrossPayConfig:
    return CrossPayConfig(
        account_id="acct-42",
        api_key="api-key-1",
        base_url="https://pay.example.com/invoice",
        signing_secret="signing-secret-1",
        return_url="https://merchant.example.com/v1/payments/callback",
        default_item_name="Order payment",
    )


@pytest.fixture
def store() -> InMemoryInvoiceStore:
    return InMemoryInvoiceStore()


@pytest.fixture
def audit_log() -> RecordingAuditLog:
    return RecordingAuditLog()
