# microshop/services/discovery/service.py
"""
Реестр экземпляров сервисов.

Хранение в Redis:
    discovery:instance:{service}:{instance_id}  - JSON экземпляра, TTL = lease
    discovery:services:{service}                - множество instance_id
    discovery:services                          - множество имён сервисов

Ключ экземпляра истекает сам, если heartbeat не приходит. Записи
индекса, чей ключ уже истёк, вычищаются при чтении.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

from microshop.common.exceptions import NotFoundError
from microshop.common.logger import log_debug, log_info
from microshop.shared.models.discovery import RegisterInstanceRequest, ServiceInstance

if TYPE_CHECKING:
    from microshop.infra.redis_client import RedisClient

SERVICES_KEY = "discovery:services"


def instance_key(service_name: str, instance_id: str) -> str:
    return f"discovery:instance:{service_name}:{instance_id}"


def service_index_key(service_name: str) -> str:
    return f"discovery:services:{service_name}"


class DiscoveryRegistry:
    """Реестр сервисов с lease-регистрациями."""

    def __init__(self, redis: "RedisClient", lease_ttl: int = 30) -> None:
        self.redis = redis
        self.lease_ttl = lease_ttl

    async def register(self, request: RegisterInstanceRequest) -> ServiceInstance:
        """Регистрирует экземпляр. Повторная регистрация с тем же id обновляет запись."""
        instance_id = request.instance_id or uuid4().hex
        now = datetime.now(timezone.utc)

        previous = await self.redis.get_model(instance_key(request.service_name, instance_id), ServiceInstance)
        instance = ServiceInstance(
            service_name=request.service_name,
            instance_id=instance_id,
            host=request.host,
            port=request.port,
            metadata=request.metadata,
            registered_at=previous.registered_at if previous else now,
            last_heartbeat=now,
        )
        await self._save(instance)
        await self.redis.sadd(service_index_key(instance.service_name), instance_id)
        await self.redis.sadd(SERVICES_KEY, instance.service_name)

        await log_info(f"Discovery: {instance.service_name} {instance_id} -> {instance.host}:{instance.port}")
        return instance

    async def heartbeat(self, service_name: str, instance_id: str) -> ServiceInstance:
        """
        Продлевает lease.

        Raises:
            NotFoundError: instance_not_found (lease истёк или экземпляр не регистрировался)
        """
        instance = await self.redis.get_model(instance_key(service_name, instance_id), ServiceInstance)
        if instance is None:
            await self.redis.srem(service_index_key(service_name), instance_id)
            raise NotFoundError(
                f"Экземпляр {service_name}/{instance_id} не зарегистрирован",
                error_code="instance_not_found",
            )

        instance = instance.model_copy(update={"last_heartbeat": datetime.now(timezone.utc)})
        await self._save(instance)
        await self.redis.sadd(service_index_key(service_name), instance_id)
        return instance

    async def deregister(self, service_name: str, instance_id: str) -> None:
        await self.redis.delete(instance_key(service_name, instance_id))
        await self.redis.srem(service_index_key(service_name), instance_id)
        await log_info(f"Discovery: {service_name} {instance_id} снят с регистрации")

    async def get_instances(self, service_name: str) -> list[ServiceInstance]:
        """Живые экземпляры сервиса."""
        instance_ids = sorted(await self.redis.smembers(service_index_key(service_name)))
        if not instance_ids:
            return []

        raw = await self.redis.mget([instance_key(service_name, iid) for iid in instance_ids])

        instances: list[ServiceInstance] = []
        expired: list[str] = []
        for instance_id, value in zip(instance_ids, raw):
            if value is None:
                expired.append(instance_id)
            else:
                instances.append(ServiceInstance.model_validate_json(value))

        if expired:
            await self.redis.srem(service_index_key(service_name), *expired)
            await log_debug(f"Discovery: вычищено {len(expired)} истёкших записей {service_name}")
        return instances

    async def get_all(self) -> dict[str, list[ServiceInstance]]:
        """{service_name: [instances]} для всех сервисов с живыми экземплярами."""
        result: dict[str, list[ServiceInstance]] = {}
        for service_name in sorted(await self.redis.smembers(SERVICES_KEY)):
            instances = await self.get_instances(service_name)
            if instances:
                result[service_name] = instances
            else:
                await self.redis.srem(SERVICES_KEY, service_name)
        return result

    async def _save(self, instance: ServiceInstance) -> None:
        await self.redis.set_model(
            instance_key(instance.service_name, instance.instance_id),
            instance,
            ttl=self.lease_ttl,
        )
