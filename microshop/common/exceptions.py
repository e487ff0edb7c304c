# microshop/common/exceptions.py
"""
Доменные исключения и их отображение в HTTP-ответы.

Все бизнес-ошибки наследуются от ShopError и несут машиночитаемый
error_code, который без изменений проходит через цепочку сервисов.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from microshop.common.logger import log_error, log_warning, request_id_var
from microshop.shared.models.common import ErrorResponse


class ShopError(Exception):
    """Базовая ошибка домена."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "bad_request"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_response(self, request_id: str | None = None) -> ErrorResponse:
        """Преобразует ошибку в тело ответа."""
        return ErrorResponse(
            error_code=self.error_code,
            message=self.message,
            details=self.details,
            request_id=request_id,
        )


class NotFoundError(ShopError):
    """Ресурс не найден."""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"


class ValidationFailedError(ShopError):
    """Запрос корректен синтаксически, но нарушает бизнес-правила."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "validation_failed"


class ConflictError(ShopError):
    """Конфликт с текущим состоянием ресурса."""
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"


class InsufficientStockError(ConflictError):
    """Недостаточно товара на складе."""
    error_code = "insufficient_stock"


class InvalidTransitionError(ConflictError):
    """Недопустимый переход статуса."""
    error_code = "invalid_status_transition"


class IdempotencyConflictError(ShopError):
    """
    Конфликт ключа идемпотентности.

    422 idempotency_key_reused: ключ уже использован с другим телом,
    409 request_in_progress: первый запрос с этим ключом ещё выполняется.
    """
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "idempotency_key_reused"


class ServiceUnavailableError(ShopError):
    """Зависимый сервис недоступен (таймаут, повторы исчерпаны, circuit open)."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "service_unavailable"


# =============================================================================
# HTTP-ОБРАБОТЧИКИ
# =============================================================================

def _current_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or request_id_var.get()


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """Отдаёт ShopError как ErrorResponse."""
    if exc.status_code >= 500:
        await log_error(f"{request.method} {request.url.path}: {exc.error_code} {exc.message}")
    else:
        await log_warning(f"{request.method} {request.url.path}: {exc.error_code} {exc.message}")

    body = exc.to_response(_current_request_id(request))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Отдаёт ошибки валидации FastAPI в том же формате, что и доменные."""
    await log_warning(f"Ошибка валидации {request.method} {request.url.path}: {exc.errors()}")
    body = ErrorResponse(
        error_code="validation_error",
        message="Некорректный запрос",
        details={"errors": [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]},
        request_id=_current_request_id(request),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body.model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Регистрирует обработчики ошибок в приложении."""
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
