from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from core.response_envelope import document_response
from schemas.invoice_schema import CheckoutIn
from services.payment_service import (
    get_invoice_status,
    handle_callback,
    payer_redirect_url,
    start_checkout,
)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/checkout")
@document_response(
    message="Checkout created",
    status_code=201,
    response_codes={422: "Invalid checkout request", 503: "Invoice store unavailable"},
)
async def create_checkout(payload: CheckoutIn, redirect: bool = False):
    checkout = await start_checkout(payload=payload)
    if redirect:
        return RedirectResponse(checkout.redirect_url, status_code=303)
    return checkout


@router.api_route("/callback", methods=["GET", "POST"])
@document_response(
    message="Callback processed",
    response_codes={400: "Callback rejected"},
)
async def payment_callback(request: Request):
    """
    CrossPay return URL.

    CrossPay redirects the payer here with `invoice_id`, `is_paid`, `amount`,
    `currency`, `hash` and `crosspay_invoice_id`, either as a query string or
    as a posted form.
    """
    params: dict[str, str] = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        params.update({key: str(value) for key, value in form.items()})

    outcome = await handle_callback(params=params)
    target = payer_redirect_url(outcome)
    if target:
        return RedirectResponse(target, status_code=303)
    return outcome


@router.get("/invoices/{invoice_id}")
@document_response(message="Invoice fetched", response_codes={404: "Invoice not found"})
async def fetch_invoice(invoice_id: str):
    return await get_invoice_status(invoice_id=invoice_id)
