# storefront/services/profile.py
# Профиль пользователя: чтение, частичное обновление и идемпотентное создание.
import logging

from sqlalchemy.orm import Session

from storefront.core.errors import ValidationFailedError
from storefront.db.session import commit_or_raise
from storefront.models.profile import UserProfile
from storefront.services.assets import get_or_create_for_user
from storefront.services.validation import clean_phone_number, validate_phone_number, validate_username

logger = logging.getLogger(__name__)


def get_profile(db: Session, user_id: str) -> UserProfile | None:
    return db.query(UserProfile).filter(UserProfile.user_id == user_id).first()


def validate_profile_update(data: dict) -> list[str]:
    errors = []
    if data.get("username") is not None:
        username = data["username"].strip()
        if username:
            error = validate_username(username)
            if error:
                errors.append(error)
    phone = data.get("phone_number")
    if phone is not None and clean_phone_number(phone) and not validate_phone_number(phone):
        errors.append("Phone number must be a valid 10-digit Indian mobile number")
    return errors


def update_profile(db: Session, user_id: str, data: dict) -> UserProfile:
    """
    Обновляет только переданные поля. Пустая строка очищает значение.
    Профиля ещё нет, создаём его (PATCH до initialize не должен падать).
    """
    errors = validate_profile_update(data)
    if errors:
        raise ValidationFailedError(errors=errors)

    profile = get_or_create_for_user(db, UserProfile, user_id)
    if "username" in data:
        profile.username = (data["username"] or "").strip() or None
    if "phone_number" in data:
        profile.phone_number = clean_phone_number(data["phone_number"]) or None

    commit_or_raise(db, "Failed to update profile")
    db.refresh(profile)
    return profile


def initialize_profile(db: Session, user_id: str) -> tuple[UserProfile, bool]:
    """Возвращает (profile, is_new)."""
    existing = get_profile(db, user_id)
    if existing is not None:
        return existing, False
    profile = get_or_create_for_user(db, UserProfile, user_id)
    commit_or_raise(db, "Failed to create profile")
    db.refresh(profile)
    logger.info(f"Profile created for user {user_id}")
    return profile, True
