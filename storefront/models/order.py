# storefront/models/order.py
# Модели заказа: Order (агрегат), OrderItem (снимок цены), OrderStatusHistory (аудит),
# OrderPayment (попытки оплаты через шлюз).
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Boolean, DateTime, Enum, Text, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront.db.base import Base, new_id, money_to_float, iso
import enum


class OrderStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"
    returned = "returned"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"
    cod_pending = "cod_pending"


class PaymentMethod(str, enum.Enum):
    razorpay = "razorpay"
    cod = "cod"


class PaymentProviderStatus(str, enum.Enum):
    pending = "pending"
    authorized = "authorized"
    captured = "captured"
    failed = "failed"
    refunded = "refunded"
    cancelled = "cancelled"


CANCELLABLE_ORDER_STATUSES = (OrderStatus.pending, OrderStatus.confirmed)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    order_number = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(128), nullable=False, index=True)
    shipping_address_id = Column(String(36), ForeignKey("addresses.id"), nullable=False)
    billing_address_id = Column(String(36), ForeignKey("addresses.id"), nullable=False)

    # Снимок цены на момент покупки
    subtotal = Column(Numeric(12, 2), nullable=False)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    is_paid = Column(Boolean, nullable=False, default=False)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.pending)
    payment_method = Column(String(32), nullable=True)
    payment_provider = Column(String(32), nullable=True)
    transaction_id = Column(String(128), nullable=True)
    payment_summary = Column(JSON, nullable=True)
    payment_expires_at = Column(DateTime, nullable=True)

    order_status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.pending, index=True)
    notes = Column(Text, nullable=True)
    acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(DateTime, nullable=True)
    acknowledged_by = Column(String(128), nullable=True)

    # Оптимистическая блокировка: каждый UPDATE сверяет и увеличивает version
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan",
                         order_by="OrderItem.created_at")
    status_history = relationship("OrderStatusHistory", back_populates="order", cascade="all, delete-orphan",
                                  order_by="OrderStatusHistory.created_at")
    payments = relationship("OrderPayment", back_populates="order", cascade="all, delete-orphan",
                            order_by="OrderPayment.created_at.desc()")
    shipping_address = relationship("Address", foreign_keys=[shipping_address_id])
    billing_address = relationship("Address", foreign_keys=[billing_address_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "shipping_address_id": self.shipping_address_id,
            "billing_address_id": self.billing_address_id,
            "subtotal": money_to_float(self.subtotal),
            "shipping_cost": money_to_float(self.shipping_cost),
            "tax_amount": money_to_float(self.tax_amount),
            "discount_amount": money_to_float(self.discount_amount),
            "total_amount": money_to_float(self.total_amount),
            "currency": self.currency,
            "amount_paid": money_to_float(self.amount_paid),
            "is_paid": bool(self.is_paid),
            "payment_status": self.payment_status.value if self.payment_status else None,
            "payment_method": self.payment_method,
            "payment_provider": self.payment_provider,
            "transaction_id": self.transaction_id,
            "payment_summary": self.payment_summary or {},
            "payment_expires_at": iso(self.payment_expires_at),
            "order_status": self.order_status.value if self.order_status else None,
            "notes": self.notes,
            "acknowledged": bool(self.acknowledged),
            "acknowledged_at": iso(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def to_detail_dict(self, with_history: bool = False) -> dict:
        """Заказ вместе с позициями и обоими адресами (опционально история и платежи)."""
        data = self.to_dict()
        data["order_items"] = [i.to_dict() for i in self.items]
        data["shipping_address"] = self.shipping_address.to_dict() if self.shipping_address else None
        data["billing_address"] = self.billing_address.to_dict() if self.billing_address else None
        if with_history:
            data["status_history"] = [h.to_dict() for h in self.status_history]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # ссылка только для справки: снимок ниже не зависит от каталога
    product_variant_id = Column(String(36), nullable=True)
    product_name = Column(String(255), nullable=False)
    variant_sku = Column(String(128), nullable=True)
    size = Column(String(8), nullable=True)
    color = Column(String(64), nullable=True)
    price_at_purchase = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    subtotal = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_variant_id": self.product_variant_id,
            "product_name": self.product_name,
            "variant_sku": self.variant_sku,
            "size": self.size,
            "color": self.color,
            "price_at_purchase": money_to_float(self.price_at_purchase),
            "quantity": self.quantity,
            "subtotal": money_to_float(self.subtotal),
            "created_at": iso(self.created_at),
        }


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(OrderStatus), nullable=False)
    notes = Column(Text, nullable=True)
    changed_by = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="status_history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status.value if self.status else None,
            "notes": self.notes,
            "changed_by": self.changed_by,
            "created_at": iso(self.created_at),
        }


class OrderPayment(Base):
    __tablename__ = "order_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    provider_order_id = Column(String(128), nullable=True)
    provider_payment_id = Column(String(128), nullable=True)
    provider_signature = Column(String(256), nullable=True)
    method = Column(String(32), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(Enum(PaymentProviderStatus), nullable=False, default=PaymentProviderStatus.pending)
    attempt_at = Column(DateTime, default=datetime.utcnow)
    # "metadata" занято у declarative-моделей
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "provider": self.provider,
            "provider_order_id": self.provider_order_id,
            "provider_payment_id": self.provider_payment_id,
            "provider_signature": self.provider_signature,
            "method": self.method,
            "amount": money_to_float(self.amount),
            "currency": self.currency,
            "status": self.status.value if self.status else None,
            "attempt_at": iso(self.attempt_at),
            "metadata": self.meta or {},
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
