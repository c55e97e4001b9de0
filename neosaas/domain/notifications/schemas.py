"""Notification schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class TeamNotificationItem(BaseModel):
    name: str
    type: str
    quantity: int = 1
    price: int  # line total, minor units


class AppointmentDetails(BaseModel):
    start_time: datetime
    end_time: datetime
    timezone: str
    notes: Optional[str] = None


class TeamNotification(BaseModel):
    type: Literal["digital_product_purchase", "appointment_booking"]
    order_id: str
    order_number: str
    customer_email: str
    customer_name: str
    items: list[TeamNotificationItem]
    total_amount: int
    currency: str = "EUR"
    appointment_details: Optional[AppointmentDetails] = None
