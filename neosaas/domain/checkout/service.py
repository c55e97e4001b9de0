"""
Checkout service - turns a cart or an appointment request into orders,
appointments and invoices

Flow per checkout:
  1. persist the order / appointment
  2. obtain an invoice from the billing gateway (test-mode fallback included)
  3. notify the team, the admin chat inbox and the customer

Step 3 is best-effort: a failed notification is logged and never changes
the checkout result. Billing and record writes are not transactional with
each other; an invoice that fails after the record is written leaves the
record pending.
"""

import logging
import random
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ...email_templates import (
    appointment_confirmation_template,
    appointment_payment_confirmation_template,
    order_confirmation_template,
)
from ...models import (
    AppointmentStatus,
    AppointmentType,
    CartItem,
    OrderStatus,
    PaymentStatus,
    Product,
    ProductType,
)
from ...shared.best_effort import run_best_effort
from ..billing.gateway import BillingGateway
from ..billing.schemas import InvoiceLineItem
from ..billing.test_mode import TestModeDisabledError
from ..email.router_service import EmailRouterService
from ..email.schemas import EmailMessage
from ..notifications.admin_notifications import notify_admin_new_appointment, notify_admin_new_order
from ..notifications.schemas import AppointmentDetails, TeamNotification, TeamNotificationItem
from ..notifications.team_notifications import (
    notify_team_appointment_booking,
    notify_team_digital_product_purchase,
)
from .errors import (
    AlreadyPaidError,
    AppointmentDataRequiredError,
    AppointmentNotFoundError,
    CartEmptyOrNotFoundError,
    CartNotSpecifiedError,
    CheckoutError,
    PaymentSimulationDisabledError,
    ProductNotFoundError,
    UnsupportedProductTypeError,
    UnsupportedProductTypeForAppointmentError,
)
from .repository import CheckoutRepository
from .schemas import AppointmentBookingData, CheckoutResult

logger = logging.getLogger(__name__)


def generate_order_number(now: Optional[datetime] = None) -> str:
    """``ORD-YYYYMMDD-NNNN``"""
    now = now or datetime.utcnow()
    return f"ORD-{now:%Y%m%d}-{random.randint(0, 9999):04d}"


# Non-appointment cart items are checked out as grouped orders, in this order.
# Aggregation surfaces the first order id and error, so digital comes first.
ORDER_GROUPS: tuple[tuple[str, tuple[ProductType, ...]], ...] = (
    ("digital", (ProductType.DIGITAL,)),
    ("standard", (ProductType.STANDARD, ProductType.FREE)),
)


def product_type(product: Product) -> ProductType:
    try:
        return ProductType(product.type)
    except ValueError:
        raise UnsupportedProductTypeError(f"Unsupported product type: {product.type}")


def _failure(error: CheckoutError) -> CheckoutResult:
    return CheckoutResult(success=False, error=error.message, error_code=error.code)


def aggregate_results(results: list[CheckoutResult]) -> CheckoutResult:
    """Combine sub-checkout results: success is AND, ids are the first seen"""

    def first(attr: str) -> Optional[str]:
        return next((getattr(r, attr) for r in results if getattr(r, attr)), None)

    return CheckoutResult(
        success=all(r.success for r in results),
        order_id=first("order_id"),
        appointment_id=first("appointment_id"),
        invoice_id=first("invoice_id"),
        requires_payment=any(r.requires_payment for r in results),
        test_mode=any(r.test_mode for r in results),
        error=first("error"),
        error_code=first("error_code"),
    )


class CheckoutService:
    """Checkout orchestrator, one instance per request (bound to its session)"""

    def __init__(
        self,
        db: Session,
        email_router: EmailRouterService,
        billing_gateway: Optional[BillingGateway] = None,
        calendar_sync: Optional[Callable[[str], Any]] = None,
    ):
        self.db = db
        self.email_router = email_router
        self.billing = billing_gateway or BillingGateway(db)
        self.calendar_sync = calendar_sync

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_checkout(
        self,
        user_id: str,
        user_email: str,
        user_name: str,
        cart_id: Optional[str] = None,
        appointment_data: Optional[AppointmentBookingData] = None,
        company_id: Optional[str] = None,
    ) -> CheckoutResult:
        """
        Check out a cart, or book a single appointment product.

        Never raises: validation problems and unexpected failures come back
        as ``success=False`` with ``error`` and ``error_code`` set.
        """
        user = {
            "user_id": user_id,
            "user_email": user_email,
            "user_name": user_name,
            "company_id": company_id,
        }
        try:
            if appointment_data and not cart_id:
                return self._checkout_single_appointment(appointment_data, user)
            return self._checkout_cart(cart_id, appointment_data, user)
        except CheckoutError as e:
            logger.warning(f"⚠️ Checkout rejected ({e.code}): {e.message}")
            return _failure(e)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Checkout failed for user {user_id}: {e}", exc_info=True)
            return CheckoutResult(success=False, error=str(e) or "Checkout failed", error_code="CheckoutFailed")

    def simulate_payment(self, appointment_id: str) -> CheckoutResult:
        """Settle a pending appointment with a simulated test-mode payment"""
        try:
            appointment = CheckoutRepository.get_appointment(self.db, appointment_id)
            if not appointment:
                raise AppointmentNotFoundError("Appointment not found")
            if appointment.is_paid:
                raise AlreadyPaidError("Already paid")

            try:
                simulation = self.billing.test_mode.simulate_payment(appointment.lago_invoice_id)
            except TestModeDisabledError as e:
                raise PaymentSimulationDisabledError(str(e))

            appointment.is_paid = True
            appointment.payment_status = PaymentStatus.PAID.value
            appointment.paid_at = simulation.paid_at
            appointment.lago_transaction_id = simulation.transaction_id
            appointment.status = AppointmentStatus.CONFIRMED.value
            self.db.commit()
        except CheckoutError as e:
            logger.warning(f"⚠️ Payment simulation rejected for {appointment_id}: {e.message}")
            return _failure(e)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Payment simulation failed for {appointment_id}: {e}", exc_info=True)
            return CheckoutResult(success=False, error=str(e), error_code="CheckoutFailed")

        logger.info(f"✅ Simulated payment {simulation.transaction_id} for appointment {appointment_id}")
        return CheckoutResult(
            success=True,
            appointment_id=appointment.id,
            invoice_id=appointment.lago_invoice_id,
            test_mode=True,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _checkout_single_appointment(
        self, appointment_data: AppointmentBookingData, user: dict
    ) -> CheckoutResult:
        product = CheckoutRepository.get_product(self.db, appointment_data.product_id or "")
        if not product:
            raise ProductNotFoundError("Product not found")
        try:
            is_appointment = product_type(product) is ProductType.APPOINTMENT
        except UnsupportedProductTypeError:
            is_appointment = False
        if not is_appointment:
            raise UnsupportedProductTypeForAppointmentError(
                f"Product type '{product.type}' cannot be booked as an appointment"
            )
        return self.process_appointment_checkout(
            product, appointment_data, order_number=generate_order_number(), **user
        )

    def _partition(self, items: list[CartItem]) -> dict[ProductType, list[CartItem]]:
        groups: dict[ProductType, list[CartItem]] = {ptype: [] for ptype in ProductType}
        for item in items:
            groups[product_type(item.product)].append(item)
        return groups

    def _checkout_cart(
        self,
        cart_id: Optional[str],
        appointment_data: Optional[AppointmentBookingData],
        user: dict,
    ) -> CheckoutResult:
        if not cart_id:
            raise CartNotSpecifiedError("Cart ID is required")

        cart = CheckoutRepository.get_active_cart(self.db, cart_id, user["user_id"])
        if not cart or not cart.items:
            raise CartEmptyOrNotFoundError("Cart is empty or not found")

        groups = self._partition(cart.items)
        appointment_items = groups.pop(ProductType.APPOINTMENT)
        if appointment_items and not appointment_data:
            raise AppointmentDataRequiredError("Appointment data is required for appointment products")

        results: list[CheckoutResult] = []

        for item in appointment_items:
            booking = appointment_data.model_copy(update={"product_id": item.product_id})
            results.append(
                self._guarded(
                    f"appointment {item.product_id}",
                    self.process_appointment_checkout,
                    item.product,
                    booking,
                    order_number=generate_order_number(),
                    **user,
                )
            )

        for group_name, types in ORDER_GROUPS:
            items = [item for ptype in types for item in groups[ptype]]
            if not items:
                continue
            results.append(
                self._guarded(
                    f"{group_name} products",
                    self.process_digital_product_checkout,
                    items,
                    group_name=group_name,
                    **user,
                )
            )

        result = aggregate_results(results)
        if result.success:
            CheckoutRepository.mark_cart_converted(self.db, cart_id)
            logger.info(f"✅ Cart {cart_id} converted")
        return result

    def _guarded(self, label: str, flow: Callable[..., CheckoutResult], *args, **kwargs) -> CheckoutResult:
        """Run one sub-checkout; a failure is reported in its result instead of aborting the others"""
        try:
            return flow(*args, **kwargs)
        except CheckoutError as e:
            return _failure(e)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Checkout of {label} failed: {e}", exc_info=True)
            return CheckoutResult(success=False, error=str(e), error_code="CheckoutFailed")

    # ------------------------------------------------------------------
    # Appointment flow
    # ------------------------------------------------------------------

    def process_appointment_checkout(
        self,
        product: Product,
        appointment_data: AppointmentBookingData,
        user_id: str,
        user_email: str,
        user_name: str,
        order_number: str,
        company_id: Optional[str] = None,
    ) -> CheckoutResult:
        price = product.hourly_rate or 0
        is_paid_product = product_type(product) is ProductType.APPOINTMENT and price > 0
        currency = product.currency or "EUR"

        appointment = CheckoutRepository.create_appointment(
            self.db,
            user_id=user_id,
            product_id=product.id,
            title=product.title,
            description=product.description,
            start_time=appointment_data.start_time,
            end_time=appointment_data.end_time,
            timezone=appointment_data.timezone,
            attendee_email=appointment_data.attendee_email,
            attendee_name=appointment_data.attendee_name,
            attendee_phone=appointment_data.attendee_phone,
            notes=appointment_data.notes,
            status=AppointmentStatus.PENDING.value,
            type=(AppointmentType.PAID if is_paid_product else AppointmentType.FREE).value,
            price=price,
            currency=currency,
            is_paid=not is_paid_product,
            payment_status=(PaymentStatus.PENDING if is_paid_product else PaymentStatus.PAID).value,
        )
        logger.info(f"✅ Appointment {appointment.id} created ({appointment.type}, {order_number})")

        if self.calendar_sync:
            run_best_effort(f"Calendar sync for appointment {appointment.id}", self.calendar_sync, appointment.id)
        else:
            logger.info(f"Calendar sync not configured, skipping appointment {appointment.id}")

        invoice = None
        if is_paid_product:
            customer = self.billing.get_or_create_customer(
                user_id=user_id,
                email=user_email,
                name=user_name,
                company_id=company_id,
            )
            invoice = self.billing.create_invoice(
                customer.external_id,
                user_email,
                user_name,
                [InvoiceLineItem(description=f"Appointment: {product.title}", unit_amount_cents=price, quantity=1)],
                currency=currency,
                test_mode=customer.test_mode,
            )

            appointment.lago_invoice_id = invoice.invoice_id
            if invoice.is_paid:
                appointment.is_paid = True
                appointment.payment_status = PaymentStatus.PAID.value
                appointment.paid_at = datetime.utcnow()
                appointment.status = AppointmentStatus.CONFIRMED.value
            self.db.commit()

        test_mode = bool(invoice and invoice.test_mode)
        self._notify_appointment(
            appointment, product, appointment_data, order_number, user_id, user_email, user_name, test_mode
        )

        return CheckoutResult(
            success=True,
            appointment_id=appointment.id,
            invoice_id=invoice.invoice_id if invoice else None,
            requires_payment=is_paid_product and not (invoice and invoice.is_paid),
            test_mode=test_mode,
        )

    def _notify_appointment(
        self,
        appointment,
        product: Product,
        appointment_data: AppointmentBookingData,
        order_number: str,
        user_id: str,
        user_email: str,
        user_name: str,
        test_mode: bool,
    ) -> None:
        notification = TeamNotification(
            type="appointment_booking",
            order_id=appointment.id,
            order_number=order_number,
            customer_email=appointment_data.attendee_email,
            customer_name=appointment_data.attendee_name,
            items=[
                TeamNotificationItem(
                    name=product.title, type=product.type, quantity=1, price=appointment.price
                )
            ],
            total_amount=appointment.price,
            currency=appointment.currency,
            appointment_details=AppointmentDetails(
                start_time=appointment_data.start_time,
                end_time=appointment_data.end_time,
                timezone=appointment_data.timezone,
                notes=appointment_data.notes,
            ),
        )
        run_best_effort(
            "Team appointment notification",
            notify_team_appointment_booking,
            self.db,
            self.email_router,
            notification,
        )

        run_best_effort(
            "Admin appointment notification",
            notify_admin_new_appointment,
            self.db,
            appointment_id=appointment.id,
            user_id=user_id,
            user_email=user_email,
            user_name=user_name,
            product_title=product.title,
            start_time=appointment_data.start_time,
            end_time=appointment_data.end_time,
            attendee_name=appointment_data.attendee_name,
            attendee_email=appointment_data.attendee_email,
        )

        if appointment.type == AppointmentType.PAID.value:
            html = appointment_payment_confirmation_template(
                customer_name=appointment_data.attendee_name,
                product_title=product.title,
                start_time=appointment_data.start_time,
                end_time=appointment_data.end_time,
                tz_name=appointment_data.timezone,
                order_number=order_number,
                price=appointment.price,
                currency=appointment.currency,
                is_paid=appointment.is_paid,
                test_mode=test_mode,
            )
        else:
            html = appointment_confirmation_template(
                customer_name=appointment_data.attendee_name,
                product_title=product.title,
                start_time=appointment_data.start_time,
                end_time=appointment_data.end_time,
                tz_name=appointment_data.timezone,
                order_number=order_number,
                test_mode=test_mode,
            )

        run_best_effort(
            "Appointment confirmation email",
            self.email_router.send_with_fallback,
            EmailMessage(
                to=[appointment_data.attendee_email],
                subject=f"Your appointment confirmation - {product.title}",
                html_content=html,
                tags=["appointment-confirmation", order_number],
            ),
        )

    # ------------------------------------------------------------------
    # Digital / standard / free flow
    # ------------------------------------------------------------------

    def process_digital_product_checkout(
        self,
        items: list[CartItem],
        user_id: str,
        user_email: str,
        user_name: str,
        company_id: Optional[str] = None,
        group_name: str = "digital",
    ) -> CheckoutResult:
        """One order for a group of non-appointment cart items"""
        total_amount = sum(item.product.price * item.quantity for item in items)
        currency = items[0].product.currency or "EUR"
        order_number = generate_order_number()

        order = CheckoutRepository.create_order(
            self.db,
            items,
            user_id=user_id,
            company_id=company_id,
            order_number=order_number,
            total_amount=total_amount,
            currency=currency,
            status=OrderStatus.PROCESSING.value,
            payment_status=(PaymentStatus.PENDING if total_amount > 0 else PaymentStatus.PAID).value,
        )
        logger.info(f"✅ Order {order_number} created ({group_name}, {total_amount} {currency})")

        invoice = None
        if total_amount > 0:
            customer = self.billing.get_or_create_customer(
                user_id=user_id,
                email=user_email,
                name=user_name,
                company_id=company_id,
            )
            invoice = self.billing.create_invoice(
                customer.external_id,
                user_email,
                user_name,
                [
                    InvoiceLineItem(
                        description=item.product.title,
                        unit_amount_cents=item.product.price,
                        quantity=item.quantity,
                    )
                    for item in items
                ],
                currency=currency,
                test_mode=customer.test_mode,
            )

            order.payment_status = (PaymentStatus.PAID if invoice.is_paid else PaymentStatus.PENDING).value
            order.status = (OrderStatus.COMPLETED if invoice.is_paid else OrderStatus.PROCESSING).value
            order.paid_at = datetime.utcnow() if invoice.is_paid else None
            order.order_metadata = {
                "lago_invoice_id": invoice.invoice_id,
                "lago_invoice_number": invoice.invoice_number,
                "test_mode": invoice.test_mode,
            }
            self.db.commit()
            if invoice.is_paid:
                CheckoutRepository.mark_order_items_delivered(self.db, order.id)
        else:
            order.status = OrderStatus.COMPLETED.value
            order.payment_status = PaymentStatus.PAID.value
            order.paid_at = datetime.utcnow()
            self.db.commit()
            CheckoutRepository.mark_order_items_delivered(self.db, order.id)

        test_mode = bool(invoice and invoice.test_mode)
        self._notify_order(order, items, group_name, user_id, user_email, user_name, test_mode)

        return CheckoutResult(
            success=True,
            order_id=order.id,
            invoice_id=invoice.invoice_id if invoice else None,
            requires_payment=total_amount > 0 and not (invoice and invoice.is_paid),
            test_mode=test_mode,
        )

    def _notify_order(
        self,
        order,
        items: list[CartItem],
        group_name: str,
        user_id: str,
        user_email: str,
        user_name: str,
        test_mode: bool,
    ) -> None:
        lines = [
            {"name": item.product.title, "quantity": item.quantity, "price": item.product.price * item.quantity}
            for item in items
        ]

        notification = TeamNotification(
            type="digital_product_purchase",
            order_id=order.id,
            order_number=order.order_number,
            customer_email=user_email,
            customer_name=user_name,
            items=[
                TeamNotificationItem(type=item.product.type, **line) for item, line in zip(items, lines)
            ],
            total_amount=order.total_amount,
            currency=order.currency,
        )
        run_best_effort(
            "Team order notification",
            notify_team_digital_product_purchase,
            self.db,
            self.email_router,
            notification,
        )

        run_best_effort(
            "Admin order notification",
            notify_admin_new_order,
            self.db,
            order_id=order.id,
            order_number=order.order_number,
            user_id=user_id,
            user_email=user_email,
            user_name=user_name,
            total_amount=order.total_amount,
            currency=order.currency,
        )

        run_best_effort(
            "Order confirmation email",
            self.email_router.send_with_fallback,
            EmailMessage(
                to=[user_email],
                subject=f"Your order confirmation #{order.order_number}",
                html_content=order_confirmation_template(
                    customer_name=user_name,
                    order_number=order.order_number,
                    items=lines,
                    total_amount=order.total_amount,
                    currency=order.currency,
                    test_mode=test_mode,
                ),
                tags=["order-confirmation", f"{group_name}-product", order.order_number],
            ),
        )
