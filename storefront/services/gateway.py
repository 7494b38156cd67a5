# storefront/services/gateway.py
# Клиент REST API Razorpay: создание заказа на стороне шлюза.
import logging

import requests

from storefront.core.config import settings
from storefront.core.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


class RazorpayGateway:
    """
    Минимальный клиент Razorpay Orders API.
    Сумма передаётся в минимальных единицах валюты (пайсы для INR).
    """

    provider = "razorpay"

    def __init__(self, key_id: str, key_secret: str, base_url: str = "https://api.razorpay.com/v1",
                 timeout: float = 30) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict | None = None) -> dict:
        """POST /orders -> {id, amount, currency, receipt, status}."""
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayError("Payment gateway is not configured")

        payload = {"amount": amount_minor, "currency": currency, "receipt": receipt[:40]}
        if notes:
            payload["notes"] = notes

        try:
            response = requests.post(
                f"{self.base_url}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"Razorpay timeout creating order for receipt {receipt}")
            raise PaymentGatewayError("Payment gateway timeout")
        except requests.exceptions.RequestException as e:
            logger.error(f"Razorpay request failed: {e}")
            raise PaymentGatewayError("Failed to create payment gateway order")

        if response.status_code not in (200, 201):
            logger.error(f"Razorpay API error {response.status_code}: {response.text[:500]}")
            raise PaymentGatewayError("Failed to create payment gateway order", status_code=response.status_code)

        data = response.json()
        if "id" not in data:
            raise PaymentGatewayError("Payment gateway returned no order id", status_code=response.status_code)
        logger.info(f"Razorpay order {data['id']} created for receipt {receipt} ({amount_minor} {currency})")
        return data


def get_gateway() -> RazorpayGateway:
    """Зависимость FastAPI; в тестах подменяется через dependency_overrides."""
    return RazorpayGateway(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url=settings.RAZORPAY_API_URL,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
    )
