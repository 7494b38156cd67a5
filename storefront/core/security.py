# storefront/core/security.py
# Проверка JWT провайдера идентификации и выпуск токенов для разработки/тестов.
from datetime import datetime, timedelta

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from storefront.core.config import settings
from storefront.core.errors import UnauthorizedError

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    """Создаём JWT токен с полем sub = subject (id пользователя у провайдера)."""
    to_encode = {"sub": str(subject)}
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    if settings.AUTH_ISSUER:
        to_encode["iss"] = settings.AUTH_ISSUER
    encoded_jwt = jwt.encode(to_encode, settings.AUTH_SECRET_KEY, algorithm=settings.AUTH_ALGORITHM)
    return encoded_jwt


def decode_user_id(token: str) -> str:
    """Возвращает sub из токена или бросает UnauthorizedError."""
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_SECRET_KEY,
            algorithms=[settings.AUTH_ALGORITHM],
            issuer=settings.AUTH_ISSUER,
        )
    except JWTError:
        raise UnauthorizedError("Could not validate credentials")
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Could not validate credentials")
    return str(user_id)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Возвращает id текущего пользователя по JWT или бросает 401."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return decode_user_id(credentials.credentials)
