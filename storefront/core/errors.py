# storefront/core/errors.py
# Иерархия ошибок магазина и их соответствие HTTP-статусам.


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    def __init__(self, message: str, **extra):
        self.message = message
        # дополнительные поля попадают в тело ответа рядом с "error"
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        payload.update(self.extra)
        return payload


class UnauthorizedError(StorefrontError):
    """Нет пользователя или токен не прошёл проверку."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(StorefrontError):
    """Ресурс принадлежит другому пользователю."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class ValidationFailedError(StorefrontError):
    """Отсутствующие или некорректные поля; проверяется до любой записи."""

    def __init__(self, message: str = "Validation failed", errors: list[str] | None = None, **extra):
        self.errors = list(errors or [message])
        super().__init__(message, errors=self.errors, **extra)


class NotFoundError(StorefrontError):
    """Адрес, заказ, товар и т.п. не найден или не принадлежит пользователю."""

    def __init__(self, resource: str, resource_id: str | None = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ConflictError(StorefrontError):
    """Запись изменена параллельно (версия заказа не совпала)."""


class DependencyFailureError(StorefrontError):
    """Запись в хранилище не удалась."""


class PaymentGatewayError(DependencyFailureError):
    """Платёжный шлюз недоступен или вернул ошибку."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


ERROR_STATUS_CODES = {
    UnauthorizedError: 401,
    ForbiddenError: 403,
    ValidationFailedError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    DependencyFailureError: 500,
    PaymentGatewayError: 502,
}


def status_code_for(exc: StorefrontError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500
