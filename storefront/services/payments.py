# storefront/services/payments.py
# Оплата заказа: онлайн через Razorpay или наложенным платежом (COD).
import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from storefront.core.config import settings
from storefront.core.errors import (
    ConflictError,
    DependencyFailureError,
    NotFoundError,
    StorefrontError,
    ValidationFailedError,
)
from storefront.db.session import commit_or_raise
from storefront.models.order import (
    Order,
    OrderPayment,
    OrderStatus,
    PaymentMethod,
    PaymentProviderStatus,
    PaymentStatus,
)
from storefront.services.gateway import RazorpayGateway
from storefront.services.orders import add_status_history, get_owned_order
from storefront.services.pricing import to_decimal, to_minor_units

logger = logging.getLogger(__name__)

MAX_PAYMENT_AMOUNT = Decimal("1000000")

PAYMENT_METHOD_NAMES = {
    "card": "Credit/Debit Card",
    "upi": "UPI",
    "netbanking": "Net Banking",
    "wallet": "Wallet",
    "cod": "Cash on Delivery",
}


def validate_payment_amount(amount) -> bool:
    amount = to_decimal(amount)
    return Decimal("0") < amount <= MAX_PAYMENT_AMOUNT


def available_payment_methods() -> list[dict]:
    return [{"id": key, "name": name} for key, name in PAYMENT_METHOD_NAMES.items()]


class PaymentInitiator:
    """
    Записывает попытки оплаты (OrderPayment) и переводит заказ по статусам оплаты.
    Каждый публичный метод: одна транзакция; изменения Order проходят через version.
    """

    def __init__(self, db: Session, gateway: RazorpayGateway | None = None):
        self.db = db
        self.gateway = gateway

    def _payment(self, order: Order, payment_id: str) -> OrderPayment:
        payment = (
            self.db.query(OrderPayment)
            .filter(OrderPayment.id == payment_id, OrderPayment.order_id == order.id)
            .first()
        )
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    @staticmethod
    def _ensure_payable(order: Order) -> None:
        if order.is_paid or order.payment_status == PaymentStatus.completed:
            raise ValidationFailedError("Order is already paid")
        if order.order_status in (OrderStatus.cancelled, OrderStatus.returned):
            raise ValidationFailedError(f"Cannot pay for a {order.order_status.value} order")

    def initialize_gateway_payment(self, user_id: str, order_id: str, amount=None, currency: str | None = None,
                                   customer: dict | None = None) -> dict:
        """
        Создаёт заказ в шлюзе и запись OrderPayment(pending).
        Возвращает id шлюза и параметры для клиентского виджета оплаты.
        """
        if self.gateway is None:
            raise ValidationFailedError("Online payments are not available")
        order = get_owned_order(self.db, user_id, order_id)
        self._ensure_payable(order)

        amount = to_decimal(order.total_amount if amount is None else amount)
        currency = currency or order.currency or settings.CURRENCY
        if not validate_payment_amount(amount):
            raise ValidationFailedError(errors=["Payment amount must be greater than 0 and at most 1000000"])
        if amount != to_decimal(order.total_amount):
            raise ValidationFailedError(errors=["Payment amount must match the order total"])

        amount_minor = to_minor_units(amount)
        gateway_order = self.gateway.create_order(
            amount_minor,
            currency,
            receipt=order.order_number,
            notes={"order_id": order.id, "user_id": user_id},
        )

        payment = OrderPayment(
            order_id=order.id,
            provider=RazorpayGateway.provider,
            provider_order_id=gateway_order["id"],
            method="upi",
            amount=amount,
            currency=currency,
            status=PaymentProviderStatus.pending,
        )
        self.db.add(payment)
        order.payment_method = PaymentMethod.razorpay.value
        order.payment_provider = RazorpayGateway.provider
        commit_or_raise(self.db, "Failed to create payment record")
        self.db.refresh(payment)

        customer = customer or {}
        options = {
            "key": self.gateway.key_id,
            "amount": amount_minor,
            "currency": currency,
            "order_id": gateway_order["id"],
            "name": settings.STORE_NAME,
            "description": f"Payment for Order #{order.order_number}",
            "prefill": {
                "name": customer.get("name") or "",
                "email": customer.get("email") or "",
                "contact": customer.get("contact") or "",
            },
            "notes": {"order_id": order.id, "user_id": user_id},
        }
        logger.info(f"Payment {payment.id} initiated for order {order.id}: {amount} {currency}")
        return {"payment_id": payment.id, "gateway_order_id": gateway_order["id"], "options": options}

    def retry_payment(self, user_id: str, order_id: str, customer: dict | None = None) -> dict:
        """Новая попытка на полную сумму заказа в его валюте."""
        order = get_owned_order(self.db, user_id, order_id)
        return self.initialize_gateway_payment(
            user_id, order.id, amount=order.total_amount, currency=order.currency, customer=customer
        )

    def handle_payment_success(self, user_id: str, order_id: str, payment_id: str, provider_payment_id: str,
                               provider_order_id: str | None = None, provider_signature: str | None = None) -> Order:
        """
        payment -> captured, order -> completed/is_paid.
        Оплата меньше суммы заказа записывается, но заказ остаётся неоплаченным.
        Если записать успех не удалось, запускается обработка неудачи.
        """
        if not provider_payment_id:
            raise ValidationFailedError(errors=["Provider payment ID is required"])
        order = get_owned_order(self.db, user_id, order_id)
        payment = self._payment(order, payment_id)
        if payment.status == PaymentProviderStatus.captured:
            return order
        if payment.status != PaymentProviderStatus.pending:
            raise ValidationFailedError(f"Payment is already {payment.status.value}")

        try:
            payment.status = PaymentProviderStatus.captured
            payment.provider_payment_id = provider_payment_id
            payment.provider_signature = provider_signature
            order.amount_paid = payment.amount
            order.transaction_id = provider_payment_id
            order.payment_summary = {
                "razorpay_order_id": provider_order_id or payment.provider_order_id,
                "razorpay_payment_id": provider_payment_id,
                "razorpay_signature": provider_signature,
            }
            if to_decimal(payment.amount) >= to_decimal(order.total_amount):
                order.payment_status = PaymentStatus.completed
                order.is_paid = True
                if order.order_status == OrderStatus.pending:
                    order.order_status = OrderStatus.confirmed
                add_status_history(self.db, order, OrderStatus.confirmed, "Payment completed successfully", user_id)
            else:
                logger.warning(
                    f"Payment {payment_id} of {payment.amount} does not cover order {order.id} "
                    f"total {order.total_amount}"
                )
                add_status_history(self.db, order, order.order_status,
                                   f"Partial payment received: {payment.amount}", user_id)
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConflictError("Order was modified concurrently, please retry")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record payment success for order {order_id}: {e}")
            self._record_failure_quietly(user_id, order_id, payment_id, "Error processing payment")
            raise DependencyFailureError("Failed to record payment")

        self.db.refresh(order)
        logger.info(f"Payment {payment_id} captured for order {order.id}")
        return order

    def handle_payment_failure(self, user_id: str, order_id: str, payment_id: str, reason: str | None) -> Order:
        reason = (reason or "").strip() or "Payment cancelled by user"
        order = get_owned_order(self.db, user_id, order_id)
        payment = self._payment(order, payment_id)
        if payment.status == PaymentProviderStatus.captured:
            raise ValidationFailedError("Payment is already captured")

        payment.status = PaymentProviderStatus.failed
        if order.is_paid or order.payment_status == PaymentStatus.completed:
            # устаревшая попытка: заказ уже оплачен другой
            commit_or_raise(self.db, "Failed to record payment failure")
            self.db.refresh(order)
            logger.info(f"Stale payment {payment_id} marked failed; order {order.id} is already paid")
            return order


        order.payment_status = PaymentStatus.failed
        order.payment_summary = {"failure_reason": reason}
        add_status_history(self.db, order, OrderStatus.pending, f"Payment failed: {reason}", user_id)
        commit_or_raise(self.db, "Failed to record payment failure")
        self.db.refresh(order)
        logger.warning(f"Payment {payment_id} failed for order {order.id}: {reason}")
        return order

    def _record_failure_quietly(self, user_id: str, order_id: str, payment_id: str, reason: str) -> None:
        try:
            self.handle_payment_failure(user_id, order_id, payment_id, reason)
        except StorefrontError as e:
            logger.error(f"Failed to record payment failure for order {order_id}: {e.message}")

    def handle_cash_on_delivery_order(self, user_id: str, order_id: str) -> bool:
        """OrderPayment(cod, pending) на полную сумму, заказ -> cod_pending. Повторный вызов ничего не меняет."""
        order = get_owned_order(self.db, user_id, order_id)
        self._ensure_payable(order)

        existing = (
            self.db.query(OrderPayment)
            .filter(
                OrderPayment.order_id == order.id,
                OrderPayment.provider == PaymentMethod.cod.value,
                OrderPayment.status == PaymentProviderStatus.pending,
            )
            .first()
        )
        if existing is not None and order.payment_status == PaymentStatus.cod_pending:
            return True

        self.db.add(OrderPayment(
            order_id=order.id,
            provider=PaymentMethod.cod.value,
            method=PaymentMethod.cod.value,
            amount=order.total_amount,
            currency=order.currency or settings.CURRENCY,
            status=PaymentProviderStatus.pending,
        ))
        order.payment_status = PaymentStatus.cod_pending
        order.payment_method = PaymentMethod.cod.value
        order.payment_provider = PaymentMethod.cod.value
        if order.order_status == OrderStatus.pending:
            order.order_status = OrderStatus.confirmed
        add_status_history(self.db, order, OrderStatus.confirmed,
                           "COD order confirmed. Payment pending on delivery.", user_id)
        commit_or_raise(self.db, "Failed to process COD order")
        logger.info(f"COD confirmed for order {order.id}")
        return True

    def get_payment_details(self, user_id: str, order_id: str) -> list[OrderPayment]:
        order = get_owned_order(self.db, user_id, order_id)
        return (
            self.db.query(OrderPayment)
            .filter(OrderPayment.order_id == order.id)
            .order_by(OrderPayment.created_at.desc())
            .all()
        )
