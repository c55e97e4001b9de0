"""Lago service - Integration with the Lago billing API"""

import logging
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from ...config import LAGO_API_KEY, LAGO_API_KEY_TEST, LAGO_API_URL
from .repository import BillingRepository
from .schemas import InvoiceLineItem

logger = logging.getLogger(__name__)

LAGO_CONFIG_KEYS = ["lago_api_key", "lago_api_key_test", "lago_api_url", "lago_mode"]

# add-on used for one-off checkout fees
CHECKOUT_ADD_ON_CODE = "checkout_item"


class LagoNotConfiguredError(RuntimeError):
    pass


class LagoAPIError(RuntimeError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"Lago API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class LagoClient:
    """Thin synchronous client for the Lago REST API"""

    def __init__(self, api_key: str, api_url: str = LAGO_API_URL, timeout: float = 30.0):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        with httpx.Client(timeout=self.timeout) as http_client:
            response = http_client.post(f"{self.api_url}{path}", json=payload, headers=self._headers)

        if response.status_code not in (200, 201):
            logger.error(f"Lago request {path} failed: {response.status_code} {response.text}")
            raise LagoAPIError(response.status_code, response.text)
        return response.json()

    def create_customer(self, external_id: str, name: str, email: str) -> str:
        """Create (or upsert) a customer and return its lago_id"""
        data = self._post(
            "/customers",
            {
                "customer": {
                    "external_id": external_id,
                    "name": name,
                    "email": email,
                    "billing_configuration": {
                        "invoice_grace_period": 3,
                        "document_locale": "fr",
                    },
                }
            },
        )
        lago_id = data.get("customer", {}).get("lago_id")
        if not lago_id:
            raise LagoAPIError(200, f"No lago_id in customer response: {data}")
        logger.info(f"✅ Lago customer ready: {lago_id} (external_id={external_id})")
        return lago_id

    def create_invoice(
        self, external_customer_id: str, currency: str, items: list[InvoiceLineItem]
    ) -> dict[str, Any]:
        """Create a one-off invoice; returns the raw Lago invoice object"""
        data = self._post(
            "/invoices",
            {
                "invoice": {
                    "external_customer_id": external_customer_id,
                    "currency": currency.upper(),
                    "fees": [
                        {
                            "add_on_code": CHECKOUT_ADD_ON_CODE,
                            "description": item.description,
                            "units": item.quantity,
                            "unit_amount_cents": item.unit_amount_cents,
                        }
                        for item in items
                    ],
                }
            },
        )
        invoice = data.get("invoice")
        if not invoice:
            raise LagoAPIError(200, f"No invoice in response: {data}")
        return invoice


def resolve_lago_settings(db: Session) -> dict[str, Optional[str]]:
    """Lago settings from platform_config, falling back to environment values"""
    configs = BillingRepository.get_platform_configs(db, LAGO_CONFIG_KEYS)
    mode = configs.get("lago_mode") or "production"
    if mode == "test":
        api_key = configs.get("lago_api_key_test") or LAGO_API_KEY_TEST
    else:
        api_key = configs.get("lago_api_key") or LAGO_API_KEY
    return {
        "mode": mode,
        "api_key": api_key,
        "api_url": configs.get("lago_api_url") or LAGO_API_URL,
    }


def build_lago_client(db: Session) -> LagoClient:
    """
    Build a client from the current settings.

    Raises:
        LagoNotConfiguredError: no API key for the active mode
    """
    settings = resolve_lago_settings(db)
    if not settings["api_key"]:
        raise LagoNotConfiguredError(f"Lago API key is not configured for {settings['mode']} mode")
    return LagoClient(api_key=settings["api_key"], api_url=settings["api_url"])
