"""Checkout domain schemas - Pydantic models for checkout requests and results"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, ValidationInfo, field_validator


class AppointmentBookingData(BaseModel):
    product_id: Optional[str] = None  # overridden per cart item
    start_time: datetime
    end_time: datetime
    timezone: str = "Europe/Paris"
    attendee_email: EmailStr
    attendee_name: str
    attendee_phone: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("end_time")
    @classmethod
    def validate_end_time(cls, v: datetime, info: ValidationInfo) -> datetime:
        start = info.data.get("start_time")
        if start and v <= start:
            raise ValueError("end_time must be after start_time")
        return v

    @field_validator("attendee_name")
    @classmethod
    def validate_attendee_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("attendee_name is required")
        return v.strip()


class CheckoutRequest(BaseModel):
    cart_id: Optional[str] = None
    appointment_data: Optional[AppointmentBookingData] = None
    user_id: str
    user_email: EmailStr
    user_name: str
    company_id: Optional[str] = None


class CheckoutResult(BaseModel):
    success: bool
    order_id: Optional[str] = None
    appointment_id: Optional[str] = None
    invoice_id: Optional[str] = None
    requires_payment: bool = False
    test_mode: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None
