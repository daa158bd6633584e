from __future__ import annotations

from decimal import Decimal

from bson import ObjectId
from pydantic import BaseModel, EmailStr, Field, model_validator

from core.currencies import CENT, MAX_AMOUNT_DIGITS
from core.payments.types import InvoiceStatus, RejectionReason


class InvoiceItem(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(gt=0, le=1_000_000)
    unit_price: Decimal = Field(gt=0, max_digits=MAX_AMOUNT_DIGITS, decimal_places=2)

    @property
    def total_price(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(CENT)


class InvoiceInfoRow(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    value: str = Field(max_length=500)


class CheckoutIn(BaseModel):
    payer_name: str = Field(min_length=1, max_length=200)
    payer_email: EmailStr
    payer_phone: str = Field(min_length=3, max_length=32)
    currency: str = Field(min_length=3, max_length=3)
    amount: Decimal = Field(gt=0, max_digits=MAX_AMOUNT_DIGITS, decimal_places=2)
    items: list[InvoiceItem] = Field(default_factory=list)
    info: list[InvoiceInfoRow] = Field(default_factory=list)


class CheckoutOut(BaseModel):
    invoice_id: str
    redirect_url: str


class InvoiceCreate(BaseModel):
    invoice_id: str
    amount: Decimal
    currency: str
    payer_name: str
    payer_email: str
    payer_phone: str
    items: list[InvoiceItem] = Field(default_factory=list)
    info: list[InvoiceInfoRow] = Field(default_factory=list)
    status: InvoiceStatus = InvoiceStatus.CREATED
    external_reference: str | None = None
    created_at: int
    updated_at: int
    paid_at: int | None = None
    failed_at: int | None = None


class InvoiceOut(InvoiceCreate):
    id: str | None = Field(default=None, alias="_id")

    @model_validator(mode="before")
    @classmethod
    def convert_objectid(cls, values):
        if isinstance(values, dict) and "_id" in values and isinstance(values["_id"], ObjectId):
            values["_id"] = str(values["_id"])
        return values


class InvoiceStatusOut(BaseModel):
    """Payer-visible view of an invoice."""

    invoice_id: str
    amount: Decimal
    currency: str
    status: InvoiceStatus
    created_at: int
    paid_at: int | None = None


class AuditEventCreate(BaseModel):
    invoice_id: str
    accepted: bool
    reason: RejectionReason | None = None
    replay: bool = False
    is_paid: bool
    amount: str
    currency: str
    expected_amount: str | None = None
    expected_currency: str | None = None
    status: InvoiceStatus | None = None
    external_reference: str | None = None
    created_at: int
