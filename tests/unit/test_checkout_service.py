"""Unit tests for CheckoutService."""

import re
from unittest.mock import MagicMock, patch

import pytest

from neosaas.domain.billing.fallback_policy import BillingFallbackPolicy
from neosaas.domain.billing.gateway import BillingGateway
from neosaas.domain.billing.lago_client import LagoClient
from neosaas.domain.billing.test_mode import LagoTestMode
from neosaas.domain.checkout.errors import UnsupportedProductTypeError
from neosaas.domain.checkout.schemas import AppointmentBookingData, CheckoutResult
from neosaas.domain.checkout.service import (
    CheckoutService,
    aggregate_results,
    generate_order_number,
    product_type,
)
from neosaas.models import (
    Appointment,
    Cart,
    ChatConversation,
    ChatMessage,
    Order,
    OrderItem,
    ProductType,
)
from tests.conftest import booking_window, make_admin, make_cart, make_product


def _lago_down(db):
    client = MagicMock(spec=LagoClient)
    client.create_customer.side_effect = ConnectionError("lago unreachable")
    client.create_invoice.side_effect = ConnectionError("lago unreachable")
    return client


def _service(db, email_router, environment="development", calendar_sync=None, client_factory=_lago_down):
    gateway = BillingGateway(
        db,
        policy=BillingFallbackPolicy(name="checkout-test", fail_max=5, reset_timeout=60),
        test_mode=LagoTestMode(db, environment=environment),
        client_factory=client_factory,
    )
    return CheckoutService(db, email_router, billing_gateway=gateway, calendar_sync=calendar_sync)


def _booking(product_id=None, **overrides):
    start, end = booking_window()
    fields = {
        "product_id": product_id,
        "start_time": start,
        "end_time": end,
        "timezone": "Europe/Paris",
        "attendee_email": "attendee@example.com",
        "attendee_name": "Alex Attendee",
    }
    fields.update(overrides)
    return AppointmentBookingData(**fields)


def _checkout(service, user, **kwargs):
    return service.process_checkout(
        user_id=user.id, user_email=user.email, user_name=user.name, **kwargs
    )


class TestDigitalCheckout:
    """Digital / standard / free cart checkout."""

    def test_zero_total_cart_completes_without_invoice(self, db, user, email_router):
        free = make_product(db, title="Starter kit", type="free", price=0)
        cart = make_cart(db, user.id, [(free, 1)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id)

        assert result.success is True
        assert result.invoice_id is None
        assert result.requires_payment is False
        assert result.test_mode is False
        order = db.query(Order).one()
        assert order.status == "completed"
        assert order.payment_status == "paid"
        assert order.paid_at is not None
        assert [item.delivery_status for item in db.query(OrderItem).all()] == ["delivered"]
        assert db.get(Cart, cart.id).status == "converted"

    def test_digital_total_and_test_mode_invoice(self, db, user, email_router):
        guide = make_product(db, title="Guide", price=1000)
        pack = make_product(db, title="Icon pack", price=2500)
        cart = make_cart(db, user.id, [(guide, 1), (pack, 1)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id)

        assert result.success is True
        assert result.test_mode is True
        assert result.requires_payment is False
        assert result.invoice_id.startswith("test_inv_")
        order = db.query(Order).one()
        assert order.total_amount == 3500
        assert sum(item.total_price for item in order.items) == order.total_amount
        assert order.status == "completed"
        assert order.payment_status == "paid"
        assert order.order_metadata["lago_invoice_id"] == result.invoice_id
        assert re.fullmatch(r"TEST-\d{6}-\d{4}", order.order_metadata["lago_invoice_number"])
        assert order.order_metadata["test_mode"] is True
        assert {item.delivery_status for item in order.items} == {"delivered"}

    def test_quantity_is_part_of_the_total(self, db, user, email_router):
        guide = make_product(db, title="Guide", price=1200)
        cart = make_cart(db, user.id, [(guide, 3)])

        _checkout(_service(db, email_router), user, cart_id=cart.id)

        item = db.query(OrderItem).one()
        assert (item.unit_price, item.quantity, item.total_price) == (1200, 3, 3600)
        assert db.query(Order).one().total_amount == 3600

    def test_billing_outage_leaves_order_pending(self, db, user, email_router):
        guide = make_product(db, title="Guide", price=1000)
        cart = make_cart(db, user.id, [(guide, 1)])

        result = _checkout(_service(db, email_router, environment="production"), user, cart_id=cart.id)

        assert result.success is True
        assert result.test_mode is True
        assert result.requires_payment is True
        order = db.query(Order).one()
        assert order.status == "processing"
        assert order.payment_status == "pending"
        assert order.items[0].delivery_status == "pending"

    def test_order_number_format(self, db, user, email_router):
        cart = make_cart(db, user.id, [(make_product(db, price=0, type="free"), 1)])
        _checkout(_service(db, email_router), user, cart_id=cart.id)
        assert re.fullmatch(r"ORD-\d{8}-\d{4}", db.query(Order).one().order_number)

    def test_notifications_and_confirmation_email(self, db, user, email_router):
        make_admin(db, "admin@neosaas.tech")
        make_admin(db, "owner@neosaas.tech", role_name="super_admin")
        cart = make_cart(db, user.id, [(make_product(db, title="Guide", price=1000), 1)])

        _checkout(_service(db, email_router), user, cart_id=cart.id)

        messages = [c.args[0] for c in email_router.send_with_fallback.call_args_list]
        team, customer = messages
        assert sorted(team.to) == ["admin@neosaas.tech", "owner@neosaas.tech"]
        assert "New digital product order" in team.subject
        assert customer.to == [user.email]
        assert customer.subject.startswith("Your order confirmation #ORD-")
        assert "10.00 EUR" in customer.html_content

        message = db.query(ChatMessage).one()
        assert message.sender_type == "system"
        assert message.message_type == "order"
        assert message.is_read is False
        assert db.query(ChatConversation).one().subject.startswith("[ORDER] New order ORD-")

    def test_email_failures_do_not_fail_checkout(self, db, user, email_router):
        make_admin(db, "admin@neosaas.tech")
        email_router.send_with_fallback.side_effect = RuntimeError("smtp exploded")
        cart = make_cart(db, user.id, [(make_product(db, price=1000), 1)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id)

        assert result.success is True
        assert email_router.send_with_fallback.call_count == 2

    def test_standard_and_free_items_share_one_order(self, db, user, email_router):
        standard = make_product(db, title="Poster", type="standard", price=1500)
        free = make_product(db, title="Sticker", type="free", price=0)
        cart = make_cart(db, user.id, [(standard, 1), (free, 2)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id)

        assert result.success is True
        order = db.query(Order).one()
        assert order.total_amount == 1500
        assert sorted(item.item_type for item in order.items) == ["free", "standard"]

    def test_digital_order_is_reported_before_standard_order(self, db, user, email_router):
        standard = make_product(db, title="Poster", type="standard", price=1500)
        digital = make_product(db, title="Guide", type="digital", price=1000)
        cart = make_cart(db, user.id, [(standard, 1), (digital, 1)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id)

        assert result.success is True
        assert db.query(Order).count() == 2
        first = db.get(Order, result.order_id)
        assert first.total_amount == 1000
        assert [item.item_type for item in first.items] == ["digital"]


class TestAppointmentCheckout:
    """Appointment booking flow."""

    def test_free_appointment(self, db, user, email_router):
        product = make_product(db, title="Discovery call", type="appointment", hourly_rate=0)
        gateway = MagicMock(spec=BillingGateway)
        service = CheckoutService(db, email_router, billing_gateway=gateway)

        result = _checkout(service, user, appointment_data=_booking(product.id))

        assert result.success is True
        assert result.requires_payment is False
        assert result.invoice_id is None
        appointment = db.query(Appointment).one()
        assert appointment.is_paid is True
        assert appointment.payment_status == "paid"
        assert appointment.type == "free"
        assert appointment.status == "pending"
        gateway.get_or_create_customer.assert_not_called()
        gateway.create_invoice.assert_not_called()

    def test_paid_appointment_in_test_mode_is_confirmed(self, db, user, email_router):
        product = make_product(db, title="Consulting hour", type="appointment", hourly_rate=5000)

        result = _checkout(_service(db, email_router), user, appointment_data=_booking(product.id))

        assert result.success is True
        assert result.test_mode is True
        assert result.requires_payment is False
        appointment = db.query(Appointment).one()
        assert appointment.type == "paid"
        assert appointment.price == 5000
        assert appointment.status == "confirmed"
        assert appointment.is_paid is True
        assert appointment.payment_status == "paid"
        assert appointment.paid_at is not None
        assert appointment.lago_invoice_id == result.invoice_id

    def test_paid_appointment_with_billing_outage_requires_payment(self, db, user, email_router):
        product = make_product(db, title="Consulting hour", type="appointment", hourly_rate=5000)

        result = _checkout(
            _service(db, email_router, environment="production"), user, appointment_data=_booking(product.id)
        )

        assert result.success is True
        assert result.requires_payment is True
        assert result.test_mode is True
        appointment = db.query(Appointment).one()
        assert appointment.is_paid is False
        assert appointment.payment_status == "pending"
        assert appointment.status == "pending"

    def test_calendar_sync_failure_is_not_blocking(self, db, user, email_router):
        product = make_product(db, title="Call", type="appointment", hourly_rate=0)
        calendar_sync = MagicMock(side_effect=RuntimeError("calendar down"))

        result = _checkout(
            _service(db, email_router, calendar_sync=calendar_sync), user, appointment_data=_booking(product.id)
        )

        assert result.success is True
        calendar_sync.assert_called_once_with(result.appointment_id)

    def test_customer_email_goes_to_attendee(self, db, user, email_router):
        product = make_product(db, title="Consulting hour", type="appointment", hourly_rate=5000)

        _checkout(_service(db, email_router), user, appointment_data=_booking(product.id))

        customer = email_router.send_with_fallback.call_args_list[-1].args[0]
        assert customer.to == ["attendee@example.com"]
        assert customer.subject == "Your appointment confirmation - Consulting hour"
        assert "Payment received: 50.00 EUR" in customer.html_content

    def test_team_notification_names_the_attendee(self, db, user, email_router):
        product = make_product(db, title="Discovery call", type="appointment", hourly_rate=0)

        with patch("neosaas.domain.checkout.service.notify_team_appointment_booking") as notify:
            _checkout(_service(db, email_router), user, appointment_data=_booking(product.id))

        notification = notify.call_args.args[2]
        assert notification.type == "appointment_booking"
        assert notification.customer_email == "attendee@example.com"
        assert notification.customer_name == "Alex Attendee"

    def test_appointment_items_in_cart(self, db, user, email_router):
        call = make_product(db, title="Call", type="appointment", hourly_rate=0)
        guide = make_product(db, title="Guide", price=1000)
        cart = make_cart(db, user.id, [(call, 1), (guide, 1)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id, appointment_data=_booking())

        assert result.success is True
        assert result.appointment_id is not None
        assert result.order_id is not None
        assert db.query(Appointment).one().product_id == call.id
        assert db.get(Cart, cart.id).status == "converted"


class TestCheckoutErrors:
    """Input errors come back as results, never exceptions."""

    def test_cart_not_specified(self, db, user, email_router):
        result = _checkout(_service(db, email_router), user)
        assert result.success is False
        assert result.error_code == "CartNotSpecified"

    def test_cart_of_another_user_is_not_found(self, db, user, email_router):
        cart = make_cart(db, "someone-else", [(make_product(db), 1)])
        result = _checkout(_service(db, email_router), user, cart_id=cart.id)
        assert result.error_code == "CartEmptyOrNotFound"

    def test_empty_cart(self, db, user, email_router):
        cart = make_cart(db, user.id, [])
        result = _checkout(_service(db, email_router), user, cart_id=cart.id)
        assert result.error_code == "CartEmptyOrNotFound"

    def test_converted_cart_is_not_found(self, db, user, email_router):
        cart = make_cart(db, user.id, [(make_product(db), 1)], status="converted")
        result = _checkout(_service(db, email_router), user, cart_id=cart.id)
        assert result.error_code == "CartEmptyOrNotFound"

    def test_unknown_product(self, db, user, email_router):
        result = _checkout(_service(db, email_router), user, appointment_data=_booking("missing"))
        assert result.error_code == "ProductNotFound"
        assert result.error == "Product not found"

    def test_product_is_not_an_appointment(self, db, user, email_router):
        product = make_product(db, type="digital", price=1000)
        result = _checkout(_service(db, email_router), user, appointment_data=_booking(product.id))
        assert result.error_code == "UnsupportedProductTypeForAppointment"
        assert db.query(Appointment).count() == 0

    def test_unknown_product_type_in_cart(self, db, user, email_router):
        bundle = make_product(db, type="bundle", price=1000)
        cart = make_cart(db, user.id, [(bundle, 1)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id)

        assert result.error_code == "UnsupportedProductType"
        assert db.query(Order).count() == 0
        assert db.get(Cart, cart.id).status == "active"

    def test_appointment_item_without_booking_data(self, db, user, email_router):
        call = make_product(db, type="appointment", hourly_rate=0)
        cart = make_cart(db, user.id, [(call, 1)])

        result = _checkout(_service(db, email_router), user, cart_id=cart.id)

        assert result.error_code == "AppointmentDataRequired"
        assert db.get(Cart, cart.id).status == "active"

    def test_unexpected_error_is_wrapped(self, db, user, email_router):
        service = _service(db, email_router)
        service._checkout_cart = MagicMock(side_effect=RuntimeError("database gone"))

        result = _checkout(service, user, cart_id="cart-1")

        assert result.success is False
        assert result.error_code == "CheckoutFailed"
        assert result.error == "database gone"

    def test_failed_sub_checkout_keeps_cart_active(self, db, user, email_router):
        guide = make_product(db, title="Guide", price=1000)
        cart = make_cart(db, user.id, [(guide, 1)])
        service = _service(db, email_router)
        service.billing.get_or_create_customer = MagicMock(side_effect=RuntimeError("boom"))

        result = _checkout(service, user, cart_id=cart.id)

        assert result.success is False
        assert result.error_code == "CheckoutFailed"
        assert db.get(Cart, cart.id).status == "active"


class TestSimulatePayment:
    """Test-mode settlement of pending appointments."""

    def _pending_appointment(self, db, user, **overrides):
        start, end = booking_window()
        fields = {
            "user_id": user.id,
            "title": "Consulting hour",
            "start_time": start,
            "end_time": end,
            "attendee_email": "attendee@example.com",
            "attendee_name": "Alex",
            "type": "paid",
            "price": 5000,
            "is_paid": False,
            "payment_status": "pending",
            "lago_invoice_id": "test_inv_1",
        }
        fields.update(overrides)
        appointment = Appointment(**fields)
        db.add(appointment)
        db.commit()
        return appointment

    def test_marks_appointment_paid_and_confirmed(self, db, user, email_router):
        appointment = self._pending_appointment(db, user)

        result = _service(db, email_router).simulate_payment(appointment.id)

        assert result.success is True
        db.refresh(appointment)
        assert appointment.is_paid is True
        assert appointment.payment_status == "paid"
        assert appointment.status == "confirmed"
        assert appointment.lago_transaction_id.startswith("test_txn_")

    def test_already_paid_makes_no_writes(self, db, user, email_router):
        appointment = self._pending_appointment(db, user, is_paid=True, payment_status="paid")
        updated_at = appointment.updated_at

        result = _service(db, email_router).simulate_payment(appointment.id)

        assert result.success is False
        assert result.error == "Already paid"
        assert result.error_code == "AlreadyPaid"
        db.refresh(appointment)
        assert appointment.lago_transaction_id is None
        assert appointment.updated_at == updated_at

    def test_unknown_appointment(self, db, email_router):
        result = _service(db, email_router).simulate_payment("missing")
        assert result.error == "Appointment not found"
        assert result.error_code == "AppointmentNotFound"

    def test_requires_test_mode(self, db, user, email_router):
        appointment = self._pending_appointment(db, user)

        result = _service(db, email_router, environment="production").simulate_payment(appointment.id)

        assert result.error_code == "TestModeDisabled"
        db.refresh(appointment)
        assert appointment.is_paid is False


class TestHelpers:
    def test_generate_order_number(self):
        from datetime import datetime

        number = generate_order_number(datetime(2030, 1, 31))
        assert re.fullmatch(r"ORD-20300131-\d{4}", number)

    def test_aggregate_results(self):
        results = [
            CheckoutResult(success=True, appointment_id="apt-1", requires_payment=True),
            CheckoutResult(success=False, error="boom", error_code="CheckoutFailed"),
            CheckoutResult(success=True, order_id="ord-1", invoice_id="inv-1", test_mode=True),
        ]

        combined = aggregate_results(results)

        assert combined.success is False
        assert combined.appointment_id == "apt-1"
        assert combined.order_id == "ord-1"
        assert combined.invoice_id == "inv-1"
        assert combined.requires_payment is True
        assert combined.test_mode is True
        assert combined.error == "boom"
        assert combined.error_code == "CheckoutFailed"

    def test_booking_end_must_follow_start(self):
        start, _ = booking_window()
        with pytest.raises(ValueError):
            _booking(end_time=start)

    def test_product_type(self):
        assert product_type(MagicMock(type="free")) is ProductType.FREE
        with pytest.raises(UnsupportedProductTypeError):
            product_type(MagicMock(type="bundle"))
