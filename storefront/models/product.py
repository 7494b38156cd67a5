# storefront/models/product.py
# Модели каталога: Category, Product, ProductVariant (размер × цвет × остаток), ProductImage.
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Text, Enum
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
from storefront.db.base import Base, new_id, money_to_float, iso
import enum


class ProductSize(str, enum.Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    XXXL = "XXXL"


class ImageViewType(str, enum.Enum):
    front = "front"
    back = "back"
    model = "model"
    details = "details"
    other = "other"


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    parent_category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "parent_category_id": self.parent_category_id,
            "description": self.description,
            "is_active": bool(self.is_active),
            "created_at": iso(self.created_at),
        }


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(12, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("Category")
    variants = relationship("ProductVariant", back_populates="product", order_by="ProductVariant.size")
    images = relationship("ProductImage", back_populates="product", order_by="ProductImage.display_order")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "base_price": money_to_float(self.base_price),
            "is_active": bool(self.is_active),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def to_detail_dict(self) -> dict:
        """Товар вместе с категорией, вариантами и картинками."""
        data = self.to_dict()
        data["category"] = self.category.to_dict() if self.category else None
        data["variants"] = [v.to_dict(with_product=False) for v in self.variants]
        data["images"] = [i.to_dict() for i in self.images]
        return data


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(128), nullable=False, unique=True)
    size = Column(Enum(ProductSize), nullable=False)
    color = Column(String(64), nullable=False)
    price_adjustment = Column(Numeric(12, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="variants")
    images = relationship("ProductImage", order_by="ProductImage.display_order", viewonly=True)

    @property
    def final_price(self) -> Decimal:
        """base_price + price_adjustment: цена единицы товара."""
        base = self.product.base_price if self.product is not None else None
        return Decimal(base or 0) + Decimal(self.price_adjustment or 0)

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_quantity or 0) <= (self.low_stock_threshold or 0)

    def to_dict(self, with_product: bool = True) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "size": self.size.value if self.size else None,
            "color": self.color,
            "price_adjustment": money_to_float(self.price_adjustment),
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_available": bool(self.is_available),
            "final_price": float(self.final_price),
            "images": [i.to_dict() for i in self.images],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if with_product:
            data["product"] = self.product.to_dict() if self.product else None
        return data


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(String(36), ForeignKey("product_variants.id"), nullable=True)
    object_path = Column(String(512), nullable=False)
    bucket_name = Column(String(128), nullable=False, default="product-images")
    view_type = Column(Enum(ImageViewType), nullable=False, default=ImageViewType.front)
    visibility = Column(String(16), nullable=False, default="public")
    alt_text = Column(String(255), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_primary = Column(Boolean, nullable=False, default=False)
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="images")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "object_path": self.object_path,
            "bucket_name": self.bucket_name,
            "view_type": self.view_type.value if self.view_type else None,
            "visibility": self.visibility,
            "alt_text": self.alt_text,
            "display_order": self.display_order,
            "is_primary": bool(self.is_primary),
            "uploaded_at": iso(self.uploaded_at),
        }
