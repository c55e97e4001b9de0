"""Billing domain schemas - Pydantic models for Lago customers and invoices"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class InvoiceLineItem(BaseModel):
    description: str
    unit_amount_cents: int
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("quantity must be at least 1")
        return v

    @field_validator("unit_amount_cents")
    @classmethod
    def validate_amount(cls, v: int) -> int:
        if v < 0:
            raise ValueError("unit_amount_cents cannot be negative")
        return v


class CustomerResult(BaseModel):
    billing_id: str  # Lago customer id (lago_id) or simulated test_cus_ id
    external_id: str  # our id sent to Lago as external_id (company id, else user id)
    test_mode: bool


class InvoiceResult(BaseModel):
    invoice_id: str
    invoice_number: str
    amount: int
    currency: str
    status: str  # pending | paid
    test_mode: bool

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"


class TestModeConfig(BaseModel):
    __test__ = False  # not a pytest class

    enabled: bool
    mode: str  # test | production
    auto_mark_paid: bool


class PaymentSimulation(BaseModel):
    success: bool = True
    invoice_id: Optional[str] = None
    transaction_id: str
    paid_at: datetime
