# microshop/infra/http_client.py
"""
HTTP-клиент для межсервисных вызовов.

Таймауты, повторы с экспоненциальной задержкой (tenacity) и
circuit breaker на каждый upstream. Ошибки 4xx upstream-сервиса
поднимаются как ShopError с тем же error_code.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from microshop.common.constants import REQUEST_ID_HEADER
from microshop.common.exceptions import ServiceUnavailableError, ShopError
from microshop.common.logger import log_warning, request_id_var

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

BaseUrlResolver = Callable[[str], Awaitable[str]]


class CircuitState(str, Enum):
    """Состояние circuit breaker."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker для одного upstream-сервиса.

    closed -> open после failure_threshold ошибок подряд;
    open -> half_open через reset_timeout секунд;
    в half_open пропускается один пробный запрос: успех закрывает
    цепь, ошибка снова открывает.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._clock() - self._opened_at >= self.reset_timeout:
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    def allow_request(self) -> bool:
        """Можно ли отправить запрос прямо сейчас."""
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state == CircuitState.HALF_OPEN and not self._trial_in_flight:
            self._trial_in_flight = True
            return True
        return False

    def record_success(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._trial_in_flight = False

    def release_trial(self) -> None:
        """Пробный запрос прерван без результата: следующий запрос станет пробным."""
        self._trial_in_flight = False

    def record_failure(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self._open()
            return
        self._failures += 1
        if self._failures >= self.failure_threshold:
            self._open()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._trial_in_flight = False


class UpstreamServerError(Exception):
    """Ответ 5xx от upstream (повод для повтора)."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class ServiceClient:
    """
    Клиент одного upstream-сервиса.

    Args:
        service_name: Имя сервиса (для логов, ошибок и circuit breaker)
        base_url: Статический адрес (если не задан resolver)
        resolver: Асинхронная функция service_name -> base_url (DiscoveryClient.resolve)
        transport: Транспорт httpx (в тестах httpx.MockTransport)
    """

    def __init__(
        self,
        service_name: str,
        base_url: str | None = None,
        resolver: BaseUrlResolver | None = None,
        timeout: float = 5.0,
        retry_attempts: int = 3,
        retry_backoff: float = 0.2,
        retry_backoff_max: float = 2.0,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if base_url is None and resolver is None:
            raise ValueError("Нужен base_url или resolver")
        self.service_name = service_name
        self._base_url = base_url.rstrip("/") if base_url else None
        self._resolver = resolver
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self.retry_backoff_max = retry_backoff_max
        self.breaker = breaker or CircuitBreaker(service_name)
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        service_name: str,
        resolver: BaseUrlResolver | None = None,
    ) -> "ServiceClient":
        """Клиент с параметрами из секции resilience конфигурации."""
        from microshop.config import settings

        cfg = settings.resilience
        return cls(
            service_name=service_name,
            base_url=None if resolver else settings.deployment.service_url(service_name),
            resolver=resolver,
            timeout=cfg.HTTP_TIMEOUT,
            retry_attempts=cfg.HTTP_RETRY_ATTEMPTS,
            retry_backoff=cfg.HTTP_RETRY_BACKOFF,
            retry_backoff_max=cfg.HTTP_RETRY_BACKOFF_MAX,
            breaker=CircuitBreaker(
                service_name,
                failure_threshold=cfg.CB_FAILURE_THRESHOLD,
                reset_timeout=cfg.CB_RESET_TIMEOUT,
            ),
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def base_url(self) -> str:
        if self._resolver is not None:
            return (await self._resolver(self.service_name)).rstrip("/")
        return self._base_url  # type: ignore[return-value]

    # =========================================================================
    # ЗАПРОСЫ
    # =========================================================================

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Any = None,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
        idempotent: bool | None = None,
        raise_for_status: bool = True,
        use_breaker: bool = True,
    ) -> httpx.Response:
        """
        Выполняет запрос к сервису.

        Args:
            idempotent: Разрешить повторы (по умолчанию по HTTP-методу)
            raise_for_status: Поднимать ShopError для ответов 4xx
                (False: ответ возвращается как есть, используется шлюзом)
            use_breaker: Учитывать запрос в circuit breaker
                (False: проверки /health, не влияют на состояние цепи)

        Raises:
            ServiceUnavailableError: circuit открыт, таймаут или повторы исчерпаны
            ShopError: upstream вернул 4xx (error_code сохраняется)
        """
        method = method.upper()
        if idempotent is None:
            idempotent = method in IDEMPOTENT_METHODS

        breaker = self.breaker if use_breaker else None
        if breaker is not None and not breaker.allow_request():
            raise ServiceUnavailableError(
                f"Сервис {self.service_name} временно недоступен",
                details={"service": self.service_name, "circuit": CircuitState.OPEN.value},
            )

        request_headers = dict(headers or {})
        request_id = request_id_var.get()
        if request_id and REQUEST_ID_HEADER not in request_headers:
            request_headers[REQUEST_ID_HEADER] = request_id

        try:
            response = await self._send_with_retries(
                method,
                path,
                json=json,
                params=params,
                headers=request_headers,
                content=content,
                attempts=self.retry_attempts if idempotent else 1,
            )
        except UpstreamServerError as e:
            if breaker is not None:
                breaker.record_failure()
            if not raise_for_status:
                return e.response
            raise ServiceUnavailableError(
                f"Сервис {self.service_name} ответил ошибкой {e.response.status_code}",
                details={"service": self.service_name, "upstream_status": e.response.status_code},
            ) from e
        except httpx.TransportError as e:
            if breaker is not None:
                breaker.record_failure()
            await log_warning(f"{self.service_name}: {method} {path} не выполнен: {e!r}")
            raise ServiceUnavailableError(
                f"Сервис {self.service_name} недоступен",
                details={"service": self.service_name, "reason": type(e).__name__},
            ) from e
        except asyncio.CancelledError:
            if breaker is not None:
                breaker.release_trial()
            raise
        except Exception:
            # ошибка резолвера или декодирования ответа считается отказом
            if breaker is not None:
                breaker.record_failure()
            raise

        # 4xx означает, что upstream жив
        if breaker is not None:
            breaker.record_success()

        if raise_for_status and response.status_code >= 400:
            raise self._map_client_error(response)
        return response

    async def _send_with_retries(
        self,
        method: str,
        path: str,
        *,
        attempts: int,
        **kwargs: Any,
    ) -> httpx.Response:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, UpstreamServerError)),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=self.retry_backoff_max),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    await log_warning(
                        f"{self.service_name}: повтор {method} {path} "
                        f"({attempt.retry_state.attempt_number}/{attempts})"
                    )
                url = f"{await self.base_url()}{path}"
                response = await self._http.request(method, url, **kwargs)
                if response.status_code >= 500:
                    raise UpstreamServerError(response)
        return response

    def _map_client_error(self, response: httpx.Response) -> ShopError:
        """Ответ 4xx -> ShopError с error_code upstream-сервиса."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "error_code" in body:
            return ShopError(
                body.get("message") or f"Ошибка сервиса {self.service_name}",
                error_code=body["error_code"],
                status_code=response.status_code,
                details=body.get("details"),
            )
        return ShopError(
            f"Сервис {self.service_name} вернул {response.status_code}",
            error_code="upstream_error",
            status_code=response.status_code,
        )

    async def get_json(self, path: str, params: Any = None) -> Any:
        response = await self.request("GET", path, params=params)
        return response.json()

    async def post_json(self, path: str, json: Any = None, idempotent: bool | None = None) -> Any:
        response = await self.request("POST", path, json=json, idempotent=idempotent)
        return response.json()
