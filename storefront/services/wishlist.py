# storefront/services/wishlist.py
# Список желаний: варианты товаров без количества, по одной записи на вариант.
import logging

from sqlalchemy.orm import Session, selectinload

from storefront.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from storefront.db.session import commit_or_raise
from storefront.models.cart import Wishlist, WishlistItem
from storefront.models.product import ProductVariant
from storefront.services.assets import get_or_create_for_user
from storefront.services.catalog import get_variant

logger = logging.getLogger(__name__)


def get_wishlist(db: Session, user_id: str) -> dict:
    wishlist = (
        db.query(Wishlist)
        .options(
            selectinload(Wishlist.items)
            .selectinload(WishlistItem.product_variant)
            .selectinload(ProductVariant.product)
        )
        .filter(Wishlist.user_id == user_id)
        .first()
    )
    if wishlist is None:
        return {"wishlist_id": None, "items": [], "total_items": 0}
    return {
        "wishlist_id": wishlist.id,
        "items": [i.to_dict() for i in wishlist.items],
        "total_items": len(wishlist.items),
    }


def add_to_wishlist(db: Session, user_id: str, product_variant_id: str) -> tuple[WishlistItem, bool]:
    """Возвращает (item, created); повторное добавление не создаёт дубликат."""
    if not product_variant_id:
        raise ValidationFailedError(errors=["Product variant ID is required"])
    variant = get_variant(db, product_variant_id)
    wishlist = get_or_create_for_user(db, Wishlist, user_id)

    existing = (
        db.query(WishlistItem)
        .filter(WishlistItem.wishlist_id == wishlist.id, WishlistItem.product_variant_id == variant.id)
        .first()
    )
    if existing is not None:
        commit_or_raise(db, "Failed to add item to wishlist")
        return existing, False

    item = WishlistItem(wishlist_id=wishlist.id, product_variant_id=variant.id)
    db.add(item)
    commit_or_raise(db, "Failed to add item to wishlist")
    db.refresh(item)
    return item, True


def remove_from_wishlist(db: Session, user_id: str, item_id: str) -> None:
    item = (
        db.query(WishlistItem)
        .options(selectinload(WishlistItem.wishlist))
        .filter(WishlistItem.id == item_id)
        .first()
    )
    if item is None:
        raise NotFoundError("Wishlist item", item_id)
    if item.wishlist.user_id != user_id:
        raise ForbiddenError("Unauthorized - wishlist ownership mismatch")
    db.delete(item)
    commit_or_raise(db, "Failed to remove item from wishlist")
