# storefront/services/cart.py
# Корзина пользователя: позиции "cart" и "save_for_later", проверка остатков,
# слияние гостевой корзины при входе.
import logging
from decimal import Decimal

from sqlalchemy.orm import Session, selectinload

from storefront.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from storefront.db.session import commit_or_raise
from storefront.models.cart import Cart, CartItem, CartItemType
from storefront.models.product import ProductVariant
from storefront.services.assets import get_or_create_for_user
from storefront.services.catalog import get_variant

logger = logging.getLogger(__name__)


def _item_type(value) -> CartItemType:
    try:
        return CartItemType(value or CartItemType.cart)
    except ValueError:
        raise ValidationFailedError(errors=["Item type must be cart or save_for_later"])


def _check_quantity(quantity) -> int:
    if quantity is None or int(quantity) < 1:
        raise ValidationFailedError(errors=["Quantity must be at least 1"])
    return int(quantity)


def _check_stock(variant: ProductVariant, quantity: int, message: str = "Insufficient stock") -> None:
    if (variant.stock_quantity or 0) < quantity:
        raise ValidationFailedError(message, errors=[message], availableStock=variant.stock_quantity or 0)


def get_cart(db: Session, user_id: str) -> Cart | None:
    return (
        db.query(Cart)
        .options(
            selectinload(Cart.items)
            .selectinload(CartItem.product_variant)
            .selectinload(ProductVariant.product)
        )
        .filter(Cart.user_id == user_id)
        .first()
    )


def checkout_lines(cart: Cart) -> list[CartItem]:
    """Только позиции типа cart: отложенные в заказ не попадают."""
    return [i for i in cart.items if i.item_type == CartItemType.cart]


def cart_summary(cart: Cart | None) -> dict:
    if cart is None:
        return {"items": [], "saved_items": [], "subtotal": 0.0, "total_items": 0, "cart_id": None}
    items = checkout_lines(cart)
    saved = [i for i in cart.items if i.item_type == CartItemType.save_for_later]
    subtotal = sum((i.product_variant.final_price * i.quantity for i in items), Decimal("0"))
    return {
        "items": [i.to_dict() for i in items],
        "saved_items": [i.to_dict() for i in saved],
        "subtotal": float(subtotal),
        "total_items": sum(i.quantity for i in items),
        "cart_id": cart.id,
    }


def _owned_item(db: Session, user_id: str, item_id: str) -> CartItem:
    item = (
        db.query(CartItem)
        .options(selectinload(CartItem.cart), selectinload(CartItem.product_variant))
        .filter(CartItem.id == item_id)
        .first()
    )
    if item is None:
        raise NotFoundError("Cart item", item_id)
    if item.cart is None or item.cart.user_id != user_id:
        raise ForbiddenError("Unauthorized - cart ownership mismatch")
    return item


def add_item(db: Session, user_id: str, product_variant_id: str, quantity: int = 1,
             item_type: str = "cart") -> tuple[CartItem, bool]:
    """Добавляет вариант в корзину; повторное добавление увеличивает количество. Возвращает (item, created)."""
    if not product_variant_id:
        raise ValidationFailedError(errors=["Product variant ID is required"])
    quantity = _check_quantity(quantity)
    kind = _item_type(item_type)

    variant = get_variant(db, product_variant_id)
    _check_stock(variant, quantity)

    cart = get_or_create_for_user(db, Cart, user_id)
    existing = (
        db.query(CartItem)
        .filter(
            CartItem.cart_id == cart.id,
            CartItem.product_variant_id == variant.id,
            CartItem.item_type == kind,
        )
        .first()
    )
    if existing is not None:
        new_quantity = existing.quantity + quantity
        _check_stock(variant, new_quantity, "Insufficient stock for updated quantity")
        existing.quantity = new_quantity
        item, created = existing, False
    else:
        item = CartItem(cart_id=cart.id, product_variant_id=variant.id, quantity=quantity, item_type=kind)
        db.add(item)
        created = True

    commit_or_raise(db, "Failed to add item to cart")
    db.refresh(item)
    return item, created


def update_item_quantity(db: Session, user_id: str, item_id: str, quantity: int) -> CartItem:
    quantity = _check_quantity(quantity)
    item = _owned_item(db, user_id, item_id)
    _check_stock(item.product_variant, quantity)
    item.quantity = quantity
    commit_or_raise(db, "Failed to update cart item")
    db.refresh(item)
    return item


def move_item(db: Session, user_id: str, item_id: str, item_type: str) -> CartItem:
    """Переносит позицию между корзиной и "отложенными"; совпадающие позиции сливаются."""
    kind = _item_type(item_type)
    item = _owned_item(db, user_id, item_id)
    if item.item_type == kind:
        return item

    twin = (
        db.query(CartItem)
        .filter(
            CartItem.cart_id == item.cart_id,
            CartItem.product_variant_id == item.product_variant_id,
            CartItem.item_type == kind,
        )
        .first()
    )
    if twin is not None:
        twin.quantity = min(twin.quantity + item.quantity, max(item.product_variant.stock_quantity or 0, twin.quantity))
        db.delete(item)
        result = twin
    else:
        item.item_type = kind
        result = item

    commit_or_raise(db, "Failed to move cart item")
    db.refresh(result)
    return result


def remove_item(db: Session, user_id: str, item_id: str) -> None:
    item = _owned_item(db, user_id, item_id)
    db.delete(item)
    commit_or_raise(db, "Failed to delete cart item")


def merge_guest_items(db: Session, user_id: str, guest_items: list[dict]) -> dict:
    """
    Переносит позиции гостевой корзины в корзину пользователя.
    Недоступные варианты пропускаются, количество ограничивается остатком.
    """
    cart = get_or_create_for_user(db, Cart, user_id)
    merged, skipped = 0, []
    for raw in guest_items or []:
        variant_id = raw.get("product_variant_id")
        try:
            quantity = int(raw.get("quantity") or 1)
        except (TypeError, ValueError):
            quantity = 0
        if not variant_id or quantity < 1:
            skipped.append({"product_variant_id": variant_id, "reason": "invalid item"})
            continue
        variant = (
            db.query(ProductVariant)
            .filter(ProductVariant.id == variant_id, ProductVariant.is_available.is_(True))
            .first()
        )
        if variant is None or (variant.stock_quantity or 0) < 1:
            skipped.append({"product_variant_id": variant_id, "reason": "unavailable"})
            continue

        existing = (
            db.query(CartItem)
            .filter(
                CartItem.cart_id == cart.id,
                CartItem.product_variant_id == variant.id,
                CartItem.item_type == CartItemType.cart,
            )
            .first()
        )
        if existing is not None:
            existing.quantity = min(existing.quantity + quantity, variant.stock_quantity)
        else:
            db.add(CartItem(
                cart_id=cart.id,
                product_variant_id=variant.id,
                quantity=min(quantity, variant.stock_quantity),
                item_type=CartItemType.cart,
            ))
            # следующая позиция с тем же вариантом должна найти эту
            db.flush()
        merged += 1

    commit_or_raise(db, "Failed to merge guest cart")
    logger.info(f"Merged {merged} guest items into cart {cart.id} (skipped {len(skipped)})")
    return {"merged": merged, "skipped": skipped, "cart_id": cart.id}


def clear_cart(db: Session, cart_id: str) -> int:
    """Удаляет позиции типа cart (отложенные остаются). Возвращает число удалённых."""
    return (
        db.query(CartItem)
        .filter(CartItem.cart_id == cart_id, CartItem.item_type == CartItemType.cart)
        .delete(synchronize_session="fetch")
    )
