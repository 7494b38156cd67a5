# storefront/models/cart.py
# Модели Cart / CartItem и Wishlist / WishlistItem — по одной коллекции на пользователя.
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront.db.base import Base, new_id, iso
import enum


class CartItemType(str, enum.Enum):
    cart = "cart"
    save_for_later = "save_for_later"


class Cart(Base):
    __tablename__ = "carts"

    id = Column(String(36), primary_key=True, default=new_id)
    # unique: повторная инициализация не создаёт вторую корзину
    user_id = Column(String(128), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("CartItem", back_populates="cart", cascade="all, delete-orphan",
                         order_by="CartItem.added_at")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, default=new_id)
    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_variant_id = Column(String(36), ForeignKey("product_variants.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    item_type = Column(Enum(CartItemType), nullable=False, default=CartItemType.cart)
    added_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cart = relationship("Cart", back_populates="items")
    product_variant = relationship("ProductVariant")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_variant_id", "item_type", name="uq_cart_items_variant_type"),
    )

    def to_dict(self) -> dict:
        variant = self.product_variant
        unit_price = variant.final_price if variant is not None else 0
        return {
            "id": self.id,
            "cart_id": self.cart_id,
            "product_variant_id": self.product_variant_id,
            "quantity": self.quantity,
            "item_type": self.item_type.value if self.item_type else None,
            "added_at": iso(self.added_at),
            "updated_at": iso(self.updated_at),
            "product_variant": variant.to_dict() if variant is not None else None,
            "subtotal": float(unit_price * self.quantity),
        }


class Wishlist(Base):
    __tablename__ = "wishlists"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(128), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("WishlistItem", back_populates="wishlist", cascade="all, delete-orphan",
                         order_by="WishlistItem.added_at")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class WishlistItem(Base):
    __tablename__ = "wishlist_items"

    id = Column(String(36), primary_key=True, default=new_id)
    wishlist_id = Column(String(36), ForeignKey("wishlists.id", ondelete="CASCADE"), nullable=False, index=True)
    product_variant_id = Column(String(36), ForeignKey("product_variants.id"), nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    wishlist = relationship("Wishlist", back_populates="items")
    product_variant = relationship("ProductVariant")

    __table_args__ = (
        UniqueConstraint("wishlist_id", "product_variant_id", name="uq_wishlist_items_variant"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "wishlist_id": self.wishlist_id,
            "product_variant_id": self.product_variant_id,
            "added_at": iso(self.added_at),
            "updated_at": iso(self.updated_at),
            "product_variant": self.product_variant.to_dict() if self.product_variant else None,
        }
