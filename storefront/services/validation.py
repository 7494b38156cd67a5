# storefront/services/validation.py
# Проверки пользовательского ввода: телефон, pincode, username, адрес.
import re

from storefront.models.address import AddressType

PHONE_RE = re.compile(r"^[6-9]\d{9}$")
PINCODE_RE = re.compile(r"^\d{6}$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")

ADDRESS_TYPES = {t.value for t in AddressType}


def clean_phone_number(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def validate_phone_number(phone: str) -> bool:
    """10-значный индийский мобильный номер (после удаления не-цифр)."""
    return bool(PHONE_RE.match(clean_phone_number(phone)))


def validate_pincode(pincode: str) -> bool:
    return bool(PINCODE_RE.match(pincode or ""))


def validate_username(username: str) -> str | None:
    """Возвращает текст ошибки или None."""
    if len(username) < 3:
        return "Username must be at least 3 characters long"
    if len(username) > 30:
        return "Username must be less than 30 characters"
    if not USERNAME_RE.match(username):
        return "Username can only contain letters, numbers, and underscores"
    return None


def _blank(value) -> bool:
    return value is None or not str(value).strip()


def _check_length(errors: list[str], value, limit: int, label: str) -> None:
    if value is not None and len(value) > limit:
        errors.append(f"{label} must be less than {limit} characters")


def validate_address_input(data: dict, partial: bool = False) -> list[str]:
    """
    Проверяет поля адреса и возвращает список ошибок.

    partial=True для PATCH: проверяются только переданные поля, но пустыми
    обязательные поля быть не могут.
    """
    errors: list[str] = []

    def required(field: str, label: str, limit: int | None = None) -> None:
        if partial and field not in data:
            return
        value = data.get(field)
        if _blank(value):
            errors.append(f"{label} cannot be empty" if partial else f"{label} is required")
        elif limit is not None:
            _check_length(errors, value, limit, label)

    required("full_name", "Full name", 100)

    if not partial or "phone_number" in data:
        phone = data.get("phone_number")
        if _blank(phone):
            errors.append("Phone number cannot be empty" if partial else "Phone number is required")
        elif not validate_phone_number(phone):
            errors.append("Phone number must be a valid 10-digit Indian mobile number")

    required("address_line1", "Address line 1", 200)
    _check_length(errors, data.get("address_line2"), 200, "Address line 2")
    required("city", "City", 100)
    required("state", "State", 100)

    if not partial or "pincode" in data:
        pincode = data.get("pincode")
        if _blank(pincode):
            errors.append("Pincode cannot be empty" if partial else "Pincode is required")
        elif not validate_pincode(pincode.strip()):
            errors.append("Pincode must be a valid 6-digit code")

    _check_length(errors, data.get("landmark"), 200, "Landmark")

    if not partial or "address_type" in data:
        if data.get("address_type") not in ADDRESS_TYPES:
            errors.append("Address type must be shipping, billing, or both")

    return errors
