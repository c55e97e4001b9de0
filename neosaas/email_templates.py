"""
HTML Email Templates
Customer confirmations and team notifications for checkout events
"""

from datetime import datetime, timezone
from html import escape
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Platform theme colors
THEME = {
    "primary": "#4f46e5",
    "appointment": "#059669",
    "background": "#f3f4f6",
    "card_bg": "#ffffff",
    "text_primary": "#111827",
    "text_secondary": "#374151",
    "text_muted": "#6b7280",
    "border": "#e5e7eb",
    "success_bg": "#f0fdf4",
    "success_text": "#166534",
    "warning_bg": "#fef3c7",
    "warning_text": "#92400e",
    "info_bg": "#dbeafe",
    "info_text": "#1e40af",
}

DEFAULT_TIMEZONE = "Europe/Paris"


def format_price(amount_cents: int, currency: str = "EUR") -> str:
    """Minor units to a display string, e.g. 3500 EUR -> '35.00 EUR'"""
    return f"{amount_cents / 100:,.2f} {currency.upper()}"


def format_datetime(value: datetime, tz_name: Optional[str] = None) -> str:
    """Naive datetimes are UTC; rendered in the given IANA zone"""
    try:
        zone = ZoneInfo(tz_name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        zone = ZoneInfo(DEFAULT_TIMEZONE)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(zone).strftime("%A %d %B %Y, %H:%M")


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    header_color: Optional[str] = None,
    is_team_email: bool = False,
) -> str:
    """Base HTML wrapper for all emails"""

    footer_notice = "This email was sent automatically by NeoSaaS"
    if not is_team_email:
        footer_notice = "You're receiving this because you placed an order on NeoSaaS."

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="utf-8">
      <meta name="viewport" content="width=device-width, initial-scale=1.0">
      <title>{escape(title)}</title>
    </head>
    <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background-color: {THEME['background']}; margin: 0; padding: 20px;">
      <span style="display: none;">{escape(preview_text)}</span>
      <div style="max-width: 600px; margin: 0 auto; background-color: {THEME['card_bg']}; border-radius: 8px; overflow: hidden;">
        <div style="background-color: {header_color or THEME['primary']}; padding: 24px; text-align: center;">
          <h1 style="color: white; margin: 0; font-size: 24px;">{escape(title)}</h1>
        </div>
        <div style="padding: 24px; color: {THEME['text_secondary']};">
          {content_sections}
        </div>
        <div style="background-color: #f9fafb; padding: 16px; text-align: center; border-top: 1px solid {THEME['border']};">
          <p style="margin: 0; color: {THEME['text_muted']}; font-size: 12px;">{footer_notice}</p>
        </div>
      </div>
    </body>
    </html>
    """


def _banner(text: str, background: str, color: str) -> str:
    return f"""
    <div style="background-color: {background}; border-radius: 8px; padding: 16px; margin-bottom: 24px;">
      <p style="margin: 0; color: {color}; font-weight: 600;">{text}</p>
    </div>
    """


def _customer_table(customer_name: str, customer_email: str) -> str:
    return f"""
    <h2 style="color: {THEME['text_secondary']}; margin: 0 0 16px 0; font-size: 18px;">Customer information</h2>
    <table style="width: 100%; margin-bottom: 24px;">
      <tr>
        <td style="padding: 8px 0; color: {THEME['text_muted']};">Name:</td>
        <td style="padding: 8px 0; color: {THEME['text_primary']}; font-weight: 500;">{escape(customer_name)}</td>
      </tr>
      <tr>
        <td style="padding: 8px 0; color: {THEME['text_muted']};">Email:</td>
        <td style="padding: 8px 0;"><a href="mailto:{escape(customer_email)}">{escape(customer_email)}</a></td>
      </tr>
    </table>
    """


def _items_table(items: list[dict], total_amount: int, currency: str) -> str:
    """items: dicts with name, quantity and price (line total, minor units)"""
    rows = "".join(
        f"""
        <tr>
          <td style="padding: 12px; border-bottom: 1px solid {THEME['border']};">{escape(item['name'])}</td>
          <td style="padding: 12px; border-bottom: 1px solid {THEME['border']}; text-align: center;">{item['quantity']}</td>
          <td style="padding: 12px; border-bottom: 1px solid {THEME['border']}; text-align: right;">{format_price(item['price'], currency) if item['price'] > 0 else 'Free'}</td>
        </tr>
        """
        for item in items
    )
    total = format_price(total_amount, currency) if total_amount > 0 else "Free"
    return f"""
    <table style="width: 100%; border-collapse: collapse; margin-bottom: 24px;">
      <thead>
        <tr style="background-color: #f9fafb;">
          <th style="padding: 12px; text-align: left;">Product</th>
          <th style="padding: 12px; text-align: center;">Qty</th>
          <th style="padding: 12px; text-align: right;">Price</th>
        </tr>
      </thead>
      <tbody>{rows}</tbody>
      <tfoot>
        <tr style="background-color: #f9fafb;">
          <td colspan="2" style="padding: 12px; font-weight: 600;">Total</td>
          <td style="padding: 12px; text-align: right; font-weight: 600;">{total}</td>
        </tr>
      </tfoot>
    </table>
    """


def _test_mode_notice(test_mode: bool) -> str:
    if not test_mode:
        return ""
    return _banner(
        "🧪 Test mode: no real payment was taken for this order.",
        THEME["warning_bg"],
        THEME["warning_text"],
    )


# ============================================================================
# CUSTOMER CONFIRMATIONS
# ============================================================================


def appointment_confirmation_template(
    customer_name: str,
    product_title: str,
    start_time: datetime,
    end_time: datetime,
    tz_name: str,
    order_number: str,
    test_mode: bool = False,
) -> str:
    """Appointment confirmation for a free booking (nothing to pay)"""
    content = f"""
    <p>Hi {escape(customer_name)},</p>
    <p>Your appointment <strong>{escape(product_title)}</strong> is booked.</p>
    {_banner(f"Booking #{escape(order_number)}", THEME['success_bg'], THEME['success_text'])}
    <p>
      Start: {format_datetime(start_time, tz_name)}<br/>
      End: {format_datetime(end_time, tz_name)}<br/>
      Timezone: {escape(tz_name)}
    </p>
    {_test_mode_notice(test_mode)}
    <p>See you soon!</p>
    """

    return get_base_template(
        title="Your appointment is confirmed",
        preview_text=f"{product_title} - {format_datetime(start_time, tz_name)}",
        content_sections=content,
        header_color=THEME["appointment"],
    )


def appointment_payment_confirmation_template(
    customer_name: str,
    product_title: str,
    start_time: datetime,
    end_time: datetime,
    tz_name: str,
    order_number: str,
    price: int,
    currency: str,
    is_paid: bool,
    test_mode: bool = False,
) -> str:
    """Appointment confirmation for a paid booking, with payment status"""
    if is_paid:
        payment_section = _banner(
            f"✅ Payment received: {format_price(price, currency)}",
            THEME["success_bg"],
            THEME["success_text"],
        )
    else:
        payment_section = _banner(
            f"💳 Amount due: {format_price(price, currency)}. Your invoice will follow by email.",
            THEME["info_bg"],
            THEME["info_text"],
        )

    content = f"""
    <p>Hi {escape(customer_name)},</p>
    <p>Your appointment <strong>{escape(product_title)}</strong> is booked.</p>
    {_banner(f"Booking #{escape(order_number)}", THEME['success_bg'], THEME['success_text'])}
    <p>
      Start: {format_datetime(start_time, tz_name)}<br/>
      End: {format_datetime(end_time, tz_name)}<br/>
      Timezone: {escape(tz_name)}
    </p>
    {payment_section}
    {_test_mode_notice(test_mode)}
    """

    return get_base_template(
        title="Your appointment is booked",
        preview_text=f"{product_title} - {format_price(price, currency)}",
        content_sections=content,
        header_color=THEME["appointment"],
    )


def order_confirmation_template(
    customer_name: str,
    order_number: str,
    items: list[dict],
    total_amount: int,
    currency: str,
    test_mode: bool = False,
) -> str:
    """Order confirmation for digital / standard / free products"""
    content = f"""
    <p>Hi {escape(customer_name)},</p>
    <p>Thank you for your order.</p>
    {_banner(f"Order #{escape(order_number)}", THEME['success_bg'], THEME['success_text'])}
    {_items_table(items, total_amount, currency)}
    {_test_mode_notice(test_mode)}
    """

    return get_base_template(
        title="Order confirmation",
        preview_text=f"Order #{order_number} - {format_price(total_amount, currency)}",
        content_sections=content,
    )


# ============================================================================
# TEAM NOTIFICATIONS
# ============================================================================


def team_digital_purchase_template(
    order_number: str,
    customer_name: str,
    customer_email: str,
    items: list[dict],
    total_amount: int,
    currency: str,
) -> str:
    """New digital product order, sent to the admin team"""
    content = f"""
    {_banner(f"Order #{escape(order_number)}", THEME['success_bg'], THEME['success_text'])}
    {_customer_table(customer_name, customer_email)}
    <h2 style="color: {THEME['text_secondary']}; margin: 0 0 16px 0; font-size: 18px;">Products ordered</h2>
    {_items_table(items, total_amount, currency)}
    {_banner("⚠️ Action required: make sure the customer has access to the files of this order.", THEME['warning_bg'], THEME['warning_text'])}
    """

    return get_base_template(
        title="🎉 New digital product order",
        preview_text=f"Order #{order_number} by {customer_name}",
        content_sections=content,
        is_team_email=True,
    )


def team_appointment_booking_template(
    order_number: str,
    customer_name: str,
    customer_email: str,
    items: list[dict],
    total_amount: int,
    currency: str,
    start_time: datetime,
    end_time: datetime,
    tz_name: str,
    notes: Optional[str] = None,
) -> str:
    """New appointment booking, sent to the admin team"""
    notes_row = ""
    if notes:
        notes_row = f"<br/>Notes: {escape(notes)}"

    content = f"""
    {_banner(f"Booking #{escape(order_number)}", THEME['success_bg'], THEME['success_text'])}
    {_customer_table(customer_name, customer_email)}
    <h2 style="color: {THEME['text_secondary']}; margin: 0 0 16px 0; font-size: 18px;">Appointment details</h2>
    <p>
      Date and time: {format_datetime(start_time, tz_name)}<br/>
      Expected end: {format_datetime(end_time, tz_name)}<br/>
      Timezone: {escape(tz_name)}{notes_row}
    </p>
    {_items_table(items, total_amount, currency)}
    {_banner("📌 Reminder: confirm the appointment with the customer if necessary.", THEME['info_bg'], THEME['info_text'])}
    """

    return get_base_template(
        title="📅 New appointment booking",
        preview_text=f"Booking #{order_number} by {customer_name}",
        content_sections=content,
        header_color=THEME["appointment"],
        is_team_email=True,
    )


# Export all template functions
__all__ = [
    "format_price",
    "format_datetime",
    "get_base_template",
    "appointment_confirmation_template",
    "appointment_payment_confirmation_template",
    "order_confirmation_template",
    "team_digital_purchase_template",
    "team_appointment_booking_template",
]
