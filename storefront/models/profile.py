# storefront/models/profile.py
# Модель профиля пользователя: username и телефон поверх внешней учётной записи.
from sqlalchemy import Column, String, DateTime
from datetime import datetime
from storefront.db.base import Base, new_id


class UserProfile(Base):
    __tablename__ = "user_profile"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(128), unique=True, index=True, nullable=False)
    username = Column(String(30), nullable=True)
    phone_number = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "phone_number": self.phone_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
