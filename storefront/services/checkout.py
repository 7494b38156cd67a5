# storefront/services/checkout.py
# Оформление заказа: корзина + два адреса -> Order, OrderItem, запись истории, очистка корзины.
#
# Всё выполняется в одной транзакции сессии:
#   1. Order (номер заказа уникален; при коллизии новый номер, до ORDER_NUMBER_ATTEMPTS раз)
#   2. OrderItem по каждой строке корзины; ошибка -> rollback, заказа в БД не остаётся
#   3. история статусов     } ошибки только логируются,
#   4. очистка корзины      } каждый шаг в своём savepoint
#   5. повторное чтение заказа для ответа; при ошибке отдаём заказ без связей
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront.core.config import settings
from storefront.core.errors import DependencyFailureError, NotFoundError, ValidationFailedError
from storefront.db.session import commit_or_raise
from storefront.models.address import Address
from storefront.models.cart import Cart, CartItem
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.product import ProductVariant
from storefront.services.cart import checkout_lines, clear_cart
from storefront.services.orders import add_status_history
from storefront.services.pricing import OrderTotals, compute_totals, generate_order_number

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 3
PAYMENT_METHODS = {m.value for m in PaymentMethod}


class CheckoutOrchestrator:

    def __init__(self, db: Session):
        self.db = db

    # --- проверки (до любой записи) ---

    @staticmethod
    def _validate_input(data: dict) -> PaymentMethod:
        if not data.get("shipping_address_id") or not data.get("billing_address_id") or not data.get("payment_method"):
            raise ValidationFailedError(
                "Shipping address, billing address, and payment method are required",
                errors=[
                    f"{label} is required"
                    for key, label in (
                        ("shipping_address_id", "Shipping address"),
                        ("billing_address_id", "Billing address"),
                        ("payment_method", "Payment method"),
                    )
                    if not data.get(key)
                ],
            )
        if data["payment_method"] not in PAYMENT_METHODS:
            raise ValidationFailedError(errors=["Payment method must be razorpay or cod"])
        return PaymentMethod(data["payment_method"])

    def _load_cart(self, user_id: str) -> Cart:
        cart = (
            self.db.query(Cart)
            .options(
                selectinload(Cart.items)
                .selectinload(CartItem.product_variant)
                .selectinload(ProductVariant.product)
            )
            .filter(Cart.user_id == user_id)
            # в Postgres сериализует параллельные оформления одной корзины
            .with_for_update()
            .first()
        )
        if cart is None:
            raise NotFoundError("Cart")
        return cart

    def _owned_address(self, user_id: str, address_id: str, label: str) -> Address:
        address = (
            self.db.query(Address)
            .filter(Address.id == address_id, Address.user_id == user_id)
            .first()
        )
        if address is None:
            raise NotFoundError(label, address_id)
        return address

    # --- шаги записи ---

    def _insert_order(self, user_id: str, data: dict, method: PaymentMethod, totals: OrderTotals) -> Order:
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order = Order(
                order_number=generate_order_number(),
                user_id=user_id,
                shipping_address_id=data["shipping_address_id"],
                billing_address_id=data["billing_address_id"],
                subtotal=totals.subtotal,
                shipping_cost=totals.shipping_cost,
                tax_amount=totals.tax_amount,
                discount_amount=totals.discount_amount,
                total_amount=totals.total_amount,
                currency=settings.CURRENCY,
                payment_status=PaymentStatus.cod_pending if method == PaymentMethod.cod else PaymentStatus.pending,
                payment_method=method.value,
                payment_provider=method.value,
                order_status=OrderStatus.pending,
                notes=(data.get("notes") or "").strip() or None,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(order)
                return order
            except IntegrityError:
                logger.warning(f"Order number collision on {order.order_number} (attempt {attempt})")
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Error creating order for user {user_id}: {e}")
                raise DependencyFailureError("Failed to create order")
        self.db.rollback()
        raise DependencyFailureError("Failed to create order")

    def _insert_items(self, order: Order, lines: list[CartItem]) -> list[OrderItem]:
        items = []
        for line in lines:
            variant = line.product_variant
            price = variant.final_price
            items.append(OrderItem(
                order_id=order.id,
                product_variant_id=variant.id,
                product_name=variant.product.name,
                variant_sku=variant.sku,
                size=variant.size.value if variant.size else None,
                color=variant.color,
                price_at_purchase=price,
                quantity=line.quantity,
                subtotal=price * line.quantity,
            ))
        self.db.add_all(items)
        self.db.flush()
        return items

    def _record_history(self, order: Order) -> None:
        try:
            with self.db.begin_nested():
                add_status_history(self.db, order, OrderStatus.pending, "Order created successfully", "system")
        except SQLAlchemyError as e:
            logger.error(f"Error creating status history for order {order.id}: {e}")

    def _clear_cart(self, order: Order, cart: Cart) -> None:
        try:
            with self.db.begin_nested():
                clear_cart(self.db, cart.id)
        except SQLAlchemyError as e:
            logger.error(f"Error clearing cart {cart.id} after order {order.id}: {e}")

    def _fetch_order(self, order_id: str) -> dict | None:
        try:
            order = (
                self.db.query(Order)
                .options(
                    selectinload(Order.items),
                    selectinload(Order.shipping_address),
                    selectinload(Order.billing_address),
                )
                .filter(Order.id == order_id)
                .one()
            )
            return order.to_detail_dict()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error fetching complete order {order_id}: {e}")
            return None

    def _minimal_order(self, order: Order, snapshot: dict) -> dict:
        """Заказ без связей из перечитанной строки; суммы в нём такие же, как в БД."""
        try:
            self.db.refresh(order)
            return order.to_dict()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error reloading order {snapshot['id']}: {e}")
            return snapshot

    # --- публичный вход ---

    def checkout(self, user_id: str, data: dict) -> dict:
        """Возвращает {message, order, requires_payment}."""
        method = self._validate_input(data)

        cart = self._load_cart(user_id)
        lines = checkout_lines(cart)
        if not lines:
            raise ValidationFailedError("Cart is empty")

        self._owned_address(user_id, data["shipping_address_id"], "Shipping address")
        self._owned_address(user_id, data["billing_address_id"], "Billing address")

        totals = compute_totals((line.product_variant.final_price, line.quantity) for line in lines)

        order = self._insert_order(user_id, data, method, totals)
        try:
            self._insert_items(order, lines)
        except SQLAlchemyError as e:
            # откат транзакции убирает и сам заказ
            self.db.rollback()
            logger.error(f"Error creating order items for order {order.order_number}: {e}")
            raise DependencyFailureError("Failed to create order items")

        self._record_history(order)
        self._clear_cart(order, cart)

        snapshot = order.to_dict()
        commit_or_raise(self.db, "Failed to create order")
        logger.info(
            f"Order {snapshot['order_number']} created for user {user_id}: "
            f"{totals.items_count} items, total {totals.total_amount} {settings.CURRENCY}"
        )

        full = self._fetch_order(snapshot["id"])
        return {
            "message": "Order created successfully",
            "order": full if full is not None else self._minimal_order(order, snapshot),
            "requires_payment": method != PaymentMethod.cod,
        }
