# storefront/services/addresses.py
# Адресная книга: CRUD и инвариант "один адрес по умолчанию на (пользователь, тип)".
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError, ValidationFailedError
from storefront.db.session import commit_or_raise
from storefront.models.address import Address, AddressType
from storefront.models.order import Order
from storefront.services.validation import clean_phone_number, validate_address_input

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "full_name", "phone_number", "address_line1", "address_line2",
    "city", "state", "pincode", "landmark", "address_type",
)


def default_slot_types(address_type) -> list[AddressType]:
    """
    Типы, с которыми конкурирует адрес за флаг is_default.
    Адрес "both" занимает оба слота, поэтому конфликтует со всеми.
    """
    address_type = AddressType(address_type)
    if address_type == AddressType.both:
        return [AddressType.shipping, AddressType.billing, AddressType.both]
    return [address_type, AddressType.both]


def _clear_defaults(db: Session, user_id: str, address_type, exclude_id: str | None = None) -> None:
    q = db.query(Address).filter(
        Address.user_id == user_id,
        Address.is_default.is_(True),
        Address.address_type.in_(default_slot_types(address_type)),
    )
    if exclude_id:
        q = q.filter(Address.id != exclude_id)
    q.update({Address.is_default: False}, synchronize_session="fetch")


def _optional(value) -> str | None:
    return (value or "").strip() or None


def list_addresses(db: Session, user_id: str) -> list[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc())
        .all()
    )


def get_address(db: Session, user_id: str, address_id: str) -> Address:
    address = (
        db.query(Address)
        .filter(Address.id == address_id, Address.user_id == user_id)
        .first()
    )
    if address is None:
        raise NotFoundError("Address", address_id)
    return address


def create_address(db: Session, user_id: str, data: dict) -> Address:
    errors = validate_address_input(data)
    if errors:
        raise ValidationFailedError(errors=errors)

    # Первый адрес пользователя всегда становится адресом по умолчанию
    has_addresses = db.query(Address.id).filter(Address.user_id == user_id).first() is not None
    should_be_default = bool(data.get("is_default")) or not has_addresses

    if should_be_default:
        _clear_defaults(db, user_id, data["address_type"])

    address = Address(
        user_id=user_id,
        address_type=AddressType(data["address_type"]),
        full_name=data["full_name"].strip(),
        phone_number=clean_phone_number(data["phone_number"]),
        address_line1=data["address_line1"].strip(),
        address_line2=_optional(data.get("address_line2")),
        city=data["city"].strip(),
        state=data["state"].strip(),
        pincode=data["pincode"].strip(),
        landmark=_optional(data.get("landmark")),
        is_default=should_be_default,
    )
    db.add(address)
    commit_or_raise(db, "Failed to create address")
    db.refresh(address)
    logger.info(f"Address {address.id} created for user {user_id} (default={should_be_default})")
    return address


def update_address(db: Session, user_id: str, address_id: str, data: dict) -> Address:
    address = get_address(db, user_id, address_id)

    errors = validate_address_input(data, partial=True)
    if errors:
        raise ValidationFailedError(errors=errors)

    # Смена типа у адреса по умолчанию тоже может задеть чужой слот
    will_be_default = data.get("is_default") is True or (bool(address.is_default) and data.get("is_default") is not False)
    if will_be_default:
        _clear_defaults(db, user_id, data.get("address_type") or address.address_type, exclude_id=address.id)

    for field in UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "phone_number":
            value = clean_phone_number(value)
        elif field == "address_type":
            value = AddressType(value)
        elif field in ("address_line2", "landmark"):
            value = _optional(value)
        else:
            value = value.strip()
        setattr(address, field, value)
    if "is_default" in data and data["is_default"] is not None:
        address.is_default = bool(data["is_default"])

    commit_or_raise(db, "Failed to update address")
    db.refresh(address)
    return address


def set_default_address(db: Session, user_id: str, address_id: str) -> Address:
    """Снимает флаг с остальных адресов того же типа и ставит на выбранный в одной транзакции."""
    address = get_address(db, user_id, address_id)
    _clear_defaults(db, user_id, address.address_type, exclude_id=address.id)
    address.is_default = True
    commit_or_raise(db, "Failed to set default address")
    db.refresh(address)
    logger.info(f"Default {address.address_type.value} address for user {user_id} -> {address.id}")
    return address


def delete_address(db: Session, user_id: str, address_id: str) -> None:
    address = get_address(db, user_id, address_id)

    # Заказы ссылаются на адрес по id, поэтому такие адреса не удаляем
    referenced = (
        db.query(Order.id)
        .filter(or_(Order.shipping_address_id == address.id, Order.billing_address_id == address.id))
        .first()
    )
    if referenced is not None:
        raise ValidationFailedError(
            "Cannot delete address",
            errors=["This address is associated with existing orders"],
        )

    was_default = bool(address.is_default)
    address_type = address.address_type
    db.delete(address)
    db.flush()

    # Если удалили адрес по умолчанию, назначаем другой подходящего типа
    if was_default:
        replacement = (
            db.query(Address)
            .filter(
                Address.user_id == user_id,
                Address.address_type.in_(default_slot_types(address_type)),
            )
            .order_by((Address.address_type == address_type).desc(), Address.created_at.desc())
            .first()
        )
        if replacement is not None:
            _clear_defaults(db, user_id, replacement.address_type, exclude_id=replacement.id)
            replacement.is_default = True

    commit_or_raise(db, "Failed to delete address")
