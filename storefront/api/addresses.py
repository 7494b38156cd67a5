# storefront/api/addresses.py
# Роуты адресной книги пользователя.
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services import addresses as address_service

router = APIRouter()


class AddressIn(BaseModel):
    # все поля необязательны: обязательность проверяет сервис, чтобы вернуть полный список ошибок
    address_type: str | None = None
    full_name: str | None = None
    phone_number: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    landmark: str | None = None
    is_default: bool | None = None


class DefaultAddressIn(BaseModel):
    address_id: str


@router.get("")
def list_addresses(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    addresses = address_service.list_addresses(db, user_id)
    return {"addresses": [a.to_dict() for a in addresses], "count": len(addresses)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_address(body: AddressIn, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    address = address_service.create_address(db, user_id, body.model_dump(exclude_unset=True))
    return {"address": address.to_dict(), "message": "Address created successfully"}


# объявлен раньше /{address_id}, иначе "default" попадёт в параметр пути
@router.patch("/default")
def set_default_address(body: DefaultAddressIn, user_id: str = Depends(get_current_user_id),
                        db: Session = Depends(get_db)):
    address = address_service.set_default_address(db, user_id, body.address_id)
    return {"address": address.to_dict(), "message": "Default address updated successfully"}


@router.get("/{address_id}")
def get_address(address_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return {"address": address_service.get_address(db, user_id, address_id).to_dict()}


@router.patch("/{address_id}")
def update_address(address_id: str, body: AddressIn, user_id: str = Depends(get_current_user_id),
                   db: Session = Depends(get_db)):
    address = address_service.update_address(db, user_id, address_id, body.model_dump(exclude_unset=True))
    return {"address": address.to_dict(), "message": "Address updated successfully"}


@router.delete("/{address_id}")
def delete_address(address_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    address_service.delete_address(db, user_id, address_id)
    return {"message": "Address deleted successfully"}
