# storefront/api/profile.py
# Роуты профиля пользователя.
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services import profile as profile_service

router = APIRouter()


class ProfileIn(BaseModel):
    username: str | None = None
    phone_number: str | None = None


@router.get("")
def get_profile(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    profile = profile_service.get_profile(db, user_id)
    if profile is None:
        return {"profile": None, "exists": False}
    return {"profile": profile.to_dict(), "exists": True}


@router.patch("")
def update_profile(body: ProfileIn, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    profile = profile_service.update_profile(db, user_id, body.model_dump(exclude_unset=True))
    return {"profile": profile.to_dict(), "message": "Profile updated successfully"}


@router.post("/initialize")
def initialize_profile(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    profile, is_new = profile_service.initialize_profile(db, user_id)
    return {
        "profile": profile.to_dict(),
        "is_new": is_new,
        "message": "Profile created successfully" if is_new else "Profile already exists",
    }
