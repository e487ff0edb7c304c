# microshop/services/orders/idempotency.py
"""
Ключи идемпотентности для POST /api/orders.

В Redis под ключом хранится отпечаток тела запроса (SHA-256) и статус:
in_progress, пока первый запрос выполняется, и completed с order_id после.
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

from fastapi import status

from microshop.common.exceptions import IdempotencyConflictError

if TYPE_CHECKING:
    from microshop.infra.redis_client import RedisClient

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


def request_fingerprint(payload: Any) -> str:
    """SHA-256 канонического JSON тела запроса."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def key_reused_error(key: str) -> IdempotencyConflictError:
    return IdempotencyConflictError(
        "Ключ идемпотентности уже использован с другим запросом",
        error_code="idempotency_key_reused",
        details={"idempotency_key": key},
    )


class IdempotencyStore:
    """Хранилище ключей идемпотентности в Redis."""

    def __init__(self, redis: "RedisClient", ttl: int = 86400, scope: str = "order") -> None:
        self.redis = redis
        self.ttl = ttl
        self.scope = scope

    def _key(self, key: str) -> str:
        return f"idempotency:{self.scope}:{key}"

    async def begin(self, key: str, fingerprint: str) -> str | None:
        """
        Захватывает ключ.

        Returns:
            None: ключ захвачен, запрос нужно выполнить;
            order_id: запрос с этим ключом уже выполнен с тем же телом

        Raises:
            IdempotencyConflictError: idempotency_key_reused (422) или request_in_progress (409)
        """
        record = {"fingerprint": fingerprint, "status": STATUS_IN_PROGRESS, "result_id": None}
        if await self.redis.set_nx(self._key(key), json.dumps(record), ttl=self.ttl):
            return None

        existing = await self.redis.get_json(self._key(key))
        if not isinstance(existing, dict):
            # Ключ истёк между SET NX и GET
            if await self.redis.set_nx(self._key(key), json.dumps(record), ttl=self.ttl):
                return None
            existing = await self.redis.get_json(self._key(key)) or {}

        if existing.get("fingerprint") != fingerprint:
            raise key_reused_error(key)

        if existing.get("status") == STATUS_COMPLETED and existing.get("result_id"):
            return existing["result_id"]

        raise IdempotencyConflictError(
            "Запрос с этим ключом идемпотентности ещё выполняется",
            error_code="request_in_progress",
            status_code=status.HTTP_409_CONFLICT,
            details={"idempotency_key": key},
        )

    async def complete(self, key: str, fingerprint: str, result_id: str) -> None:
        record = {"fingerprint": fingerprint, "status": STATUS_COMPLETED, "result_id": result_id}
        await self.redis.set(self._key(key), json.dumps(record), ttl=self.ttl)

    async def abandon(self, key: str) -> None:
        """Освобождает ключ после неудачного запроса, чтобы клиент мог повторить."""
        await self.redis.delete(self._key(key))
