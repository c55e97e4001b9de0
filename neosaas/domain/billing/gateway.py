"""
Billing gateway - customer and invoice creation for checkout

Picks between the real Lago backend and the test-mode simulator. In
production mode every backend call goes through the fallback policy, so a
Lago outage yields a simulated (test_mode=True, pending) result instead of
an exception.
"""

import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session

from .fallback_policy import BillingFallbackPolicy
from .lago_client import LagoClient, LagoNotConfiguredError, build_lago_client
from .repository import BillingRepository
from .schemas import CustomerResult, InvoiceLineItem, InvoiceResult
from .test_mode import LagoTestMode

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _invoice_status(lago_invoice: dict) -> str:
    """Map a Lago invoice to our pending/paid status"""
    if lago_invoice.get("payment_status") == "succeeded":
        return "paid"
    return "pending"


class BillingGateway:
    def __init__(
        self,
        db: Session,
        policy: Optional[BillingFallbackPolicy] = None,
        test_mode: Optional[LagoTestMode] = None,
        client_factory: Callable[[Session], LagoClient] = build_lago_client,
    ):
        self.db = db
        self.policy = policy or BillingFallbackPolicy()
        self.test_mode = test_mode or LagoTestMode(db)
        self.client_factory = client_factory

    def is_test_mode(self) -> bool:
        return self.test_mode.should_use_test_mode()

    def _with_client(
        self,
        label: str,
        operation: Callable[[LagoClient], T],
        fallback: Callable[[], T],
    ) -> T:
        """Run ``operation`` through the policy; without an API key go straight to ``fallback``"""
        try:
            client = self.client_factory(self.db)
        except LagoNotConfiguredError as e:
            return self.policy.fall_back(label, str(e), fallback)
        return self.policy.execute(label, lambda: operation(client), fallback)

    def get_or_create_customer(
        self,
        user_id: str,
        email: str,
        name: str,
        company_id: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> CustomerResult:
        """
        Billing customer for a user or, when given, their company.

        A company's Lago id is cached on the company row and reused.
        """
        external_id = company_id or user_id
        display_name = company_name or name

        if self.is_test_mode():
            return self.test_mode.create_customer(external_id, email, display_name)

        if company_id:
            company = BillingRepository.get_company(self.db, company_id)
            if company and company.lago_id:
                return CustomerResult(billing_id=company.lago_id, external_id=external_id, test_mode=False)

        def create_in_lago(client: LagoClient) -> CustomerResult:
            lago_id = client.create_customer(external_id=external_id, name=display_name, email=email)
            if company_id:
                BillingRepository.cache_company_lago_id(self.db, company_id, lago_id)
            return CustomerResult(billing_id=lago_id, external_id=external_id, test_mode=False)

        return self._with_client(
            "customer",
            create_in_lago,
            lambda: self.test_mode.create_customer(external_id, email, display_name),
        )

    def create_invoice(
        self,
        customer_id: str,
        email: str,
        name: str,
        items: list[InvoiceLineItem],
        currency: str = "EUR",
        test_mode: bool = False,
    ) -> InvoiceResult:
        """
        One-off invoice for the given lines.

        ``customer_id`` is the external id of the customer. A customer created
        in test mode (``test_mode=True``) always gets a simulated invoice, the
        backend would not know it.
        """
        if test_mode or self.is_test_mode():
            return self.test_mode.create_invoice(customer_id, items, currency)

        def create_in_lago(client: LagoClient) -> InvoiceResult:
            lago_invoice = client.create_invoice(customer_id, currency, items)
            invoice = InvoiceResult(
                invoice_id=lago_invoice["lago_id"],
                invoice_number=lago_invoice.get("number") or lago_invoice["lago_id"],
                amount=lago_invoice.get(
                    "total_amount_cents",
                    sum(item.unit_amount_cents * item.quantity for item in items),
                ),
                currency=lago_invoice.get("currency") or currency,
                status=_invoice_status(lago_invoice),
                test_mode=False,
            )
            logger.info(f"✅ Lago invoice created for {name} <{email}>: {invoice.invoice_number} ({invoice.status})")
            return invoice

        return self._with_client(
            "invoice",
            create_in_lago,
            lambda: self.test_mode.create_invoice(customer_id, items, currency),
        )
