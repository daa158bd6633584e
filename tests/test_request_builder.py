from __future__ import annotations

import json
from dataclasses import replace
from decimal import Decimal
from urllib.parse import parse_qs, urlsplit

import pytest

from core.currencies import has_cent_precision
from core.errors import AppException, ErrorCode, StoreWriteFailure
from core.payments import signature
from core.payments.invoice_ids import InvoiceIdGenerator
from core.payments.request_builder import PaymentRequestBuilder
from core.payments.types import InvoiceStatus


def _builder(config, store) -> PaymentRequestBuilder:
    return PaymentRequestBuilder(
        config=config,
        store=store,
        id_generator=InvoiceIdGenerator(prefix="INV-", length=10),
        clock=lambda: 1_700_000_000,
    )


def _query(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


def _checkout(**overrides):
    payload = {
        "payer_name": "Jane Payer",
        "payer_email": "jane@example.com",
        "payer_phone": "+15550100",
        "currency": "usd",
        "amount": Decimal("10"),
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_build_persists_created_invoice_and_signs_the_triple(crosspay_config, store):
    url = await _builder(crosspay_config, store).build(**_checkout())

    assert len(store.rows) == 1
    (invoice_id, row), = store.rows.items()
    assert row["status"] == InvoiceStatus.CREATED.value
    assert row["amount"] == "10.00"
    assert row["currency"] == "USD"
    assert row["created_at"] == 1_700_000_000
    assert row["paid_at"] is None
    assert row["external_reference"] is None

    assert url.startswith("https://pay.example.com/invoice?")
    params = _query(url)
    assert params["invoice_id"] == invoice_id
    assert params["total"] == "10.00"
    assert params["currency"] == "USD"
    assert params["account"] == "acct-42"
    assert params["apikey"] == "api-key-1"
    assert params["return_url"] == "https://merchant.example.com/v1/payments/callback"
    assert params["email"] == "jane@example.com"
    assert params["mobile"] == "+15550100"
    assert params["name"] == "Jane Payer"
    assert params["verification_token"] == signature.sign([invoice_id, "10.00", "USD"], "signing-secret-1")


@pytest.mark.asyncio
async def test_build_embeds_invoice_details_with_default_item(crosspay_config, store):
    url = await _builder(crosspay_config, store).build(**_checkout(amount="25.5"))

    details = json.loads(_query(url)["inv_details"])
    assert details["inv_items"] == [
        {
            "name": "Order payment",
            "quantity": "1",
            "unitPrice": "25.50",
            "totalPrice": "25.50",
            "currency": "USD",
        }
    ]
    assert details["inv_info"] == []
    assert details["user"] == {"userName": "Jane Payer"}


@pytest.mark.asyncio
async def test_build_uses_supplied_items_and_info_rows(crosspay_config, store):
    url = await _builder(crosspay_config, store).build(
        **_checkout(
            amount="30.00",
            items=[
                {"name": "Deep clean", "quantity": 2, "unit_price": "12.50"},
                {"name": "Supplies", "quantity": 1, "unit_price": "5.00"},
            ],
            info=[{"title": "Booking", "value": "BK-77"}],
        )
    )

    details = json.loads(_query(url)["inv_details"])
    assert [item["totalPrice"] for item in details["inv_items"]] == ["25.00", "5.00"]
    assert details["inv_info"] == [{"row_title": "Booking", "row_value": "BK-77"}]


@pytest.mark.asyncio
async def test_prepare_keeps_existing_base_url_query(crosspay_config, store):
    config = replace(crosspay_config, base_url="https://pay.example.com/pay?lang=en")
    builder = _builder(config, store)

    url = await builder.build(**_checkout())

    params = _query(url)
    assert params["lang"] == "en"
    assert "verification_token" in params


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": Decimal("0")},
        {"amount": Decimal("-5.00")},
        {"amount": "not-a-number"},
        {"amount": Decimal("10.005")},
        {"currency": "XYZ"},
        {"currency": "US"},
        {"payer_email": "not-an-email"},
        {"payer_name": ""},
        {"items": [{"name": "Too cheap", "quantity": 1, "unit_price": "1.00"}]},
        {"amount": "1E+27"},
        {"amount": "12345678901234.56"},
        {"items": [{"name": "Split three ways", "quantity": 3, "unit_price": "3.333"}]},
    ],
)
@pytest.mark.asyncio
async def test_invalid_input_is_rejected_before_any_write(crosspay_config, store, overrides):
    with pytest.raises(AppException) as exc_info:
        await _builder(crosspay_config, store).build(**_checkout(**overrides))

    assert exc_info.value.status_code == 422
    assert exc_info.value.detail["code"] == ErrorCode.VALIDATION_FAILED.value  # type: ignore
    assert store.create_calls == 0
    assert store.rows == {}


@pytest.mark.asyncio
async def test_store_failure_aborts_without_url(crosspay_config, store):
    store.fail_writes = True

    with pytest.raises(StoreWriteFailure):
        await _builder(crosspay_config, store).build(**_checkout())

    assert store.rows == {}


@pytest.mark.asyncio
async def test_collision_is_retried_with_a_fresh_id(crosspay_config, store, monkeypatch: pytest.MonkeyPatch):
    generator = InvoiceIdGenerator(prefix="INV-", length=10)
    candidates = iter(["INV-TAKEN00001", "INV-FRESH00001"])
    monkeypatch.setattr(generator, "generate", lambda: next(candidates))
    store.taken_ids.add("INV-TAKEN00001")
    builder = PaymentRequestBuilder(config=crosspay_config, store=store, id_generator=generator)

    signed = await builder.prepare(**_checkout())

    assert signed.invoice_id == "INV-FRESH00001"
    assert store.create_calls == 2
    assert list(store.rows) == ["INV-FRESH00001"]


@pytest.mark.asyncio
async def test_line_item_prices_agree_with_their_totals(crosspay_config, store):
    url = await _builder(crosspay_config, store).build(
        **_checkout(items=[{"name": "Window clean", "quantity": 3, "unit_price": "3.33"}], amount="9.99")
    )

    item = json.loads(_query(url)["inv_details"])["inv_items"][0]
    assert item["unitPrice"] == "3.33"
    assert item["quantity"] == "3"
    assert Decimal(item["unitPrice"]) * int(item["quantity"]) == Decimal(item["totalPrice"])


def test_cent_precision_check_rejects_amounts_too_large_to_quantize():
    assert has_cent_precision(Decimal("12.50")) is True
    assert has_cent_precision(Decimal("1E+27")) is False
