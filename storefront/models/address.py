# storefront/models/address.py
# Модель Address — адресная книга пользователя (доставка / оплата).
from sqlalchemy import Column, String, Boolean, DateTime, Enum, Index
from datetime import datetime
from storefront.db.base import Base, new_id
import enum


class AddressType(str, enum.Enum):
    shipping = "shipping"
    billing = "billing"
    both = "both"


class Address(Base):
    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=new_id)
    # id пользователя у внешнего провайдера идентификации
    user_id = Column(String(128), nullable=False, index=True)
    address_type = Column(Enum(AddressType), nullable=False, default=AddressType.shipping)
    full_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=False)  # только цифры
    address_line1 = Column(String(200), nullable=False)
    address_line2 = Column(String(200), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    pincode = Column(String(6), nullable=False)
    landmark = Column(String(200), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_addresses_user_default", "user_id", "is_default", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "address_type": self.address_type.value if self.address_type else None,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "landmark": self.landmark,
            "is_default": bool(self.is_default),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
