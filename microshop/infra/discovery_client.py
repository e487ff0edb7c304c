# microshop/infra/discovery_client.py
"""
Клиент реестра сервисов.

Сервис регистрирует себя при старте, продлевает lease фоновой задачей
и снимает регистрацию при остановке. resolve() выбирает экземпляр
round-robin и откатывается на статический адрес из конфигурации.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from typing import Any, Callable, Iterator
from uuid import uuid4

from microshop.common.exceptions import ShopError
from microshop.common.logger import log_debug, log_info, log_warning
from microshop.infra.http_client import ServiceClient
from microshop.shared.models.discovery import ServiceInstance


class DiscoveryClient:
    """Клиентская сторона discovery: self-registration, heartbeat, resolve."""

    def __init__(
        self,
        registry: ServiceClient,
        fallback: Callable[[str], str],
        heartbeat_interval: float = 10.0,
        cache_ttl: float = 5.0,
        enabled: bool = True,
    ) -> None:
        self.registry = registry
        self.fallback = fallback
        self.heartbeat_interval = heartbeat_interval
        self.cache_ttl = cache_ttl
        self.enabled = enabled

        # повтор POST с тем же id не создаёт второй экземпляр в реестре
        self.local_instance_id = uuid4().hex
        self.instance: ServiceInstance | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._cache: dict[str, tuple[float, list[ServiceInstance]]] = {}
        self._counters: dict[str, Iterator[int]] = {}

    @classmethod
    def from_settings(cls) -> "DiscoveryClient":
        from microshop.config import settings

        registry = ServiceClient(
            service_name="discovery",
            base_url=settings.deployment.service_url("discovery"),
            timeout=settings.resilience.HTTP_TIMEOUT,
            retry_attempts=1,
        )
        return cls(
            registry=registry,
            fallback=settings.deployment.service_url,
            heartbeat_interval=settings.discovery.DISCOVERY_HEARTBEAT_INTERVAL,
            enabled=settings.discovery.DISCOVERY_ENABLED,
        )

    # =========================================================================
    # РЕГИСТРАЦИЯ
    # =========================================================================

    async def register(
        self,
        service_name: str,
        host: str,
        port: int,
        metadata: dict[str, Any] | None = None,
    ) -> ServiceInstance:
        """Регистрирует экземпляр (повторная регистрация сохраняет instance_id)."""
        instance_id = self.local_instance_id
        if self.instance is not None and self.instance.service_name == service_name and self.instance.instance_id:
            instance_id = self.instance.instance_id
        payload = {
            "service_name": service_name,
            "host": host,
            "port": port,
            "metadata": metadata or {},
            "instance_id": instance_id,
        }

        data = await self.registry.post_json("/api/discovery/instances", json=payload, idempotent=True)
        self.instance = ServiceInstance.model_validate(data)
        await log_info(
            f"Зарегистрирован в discovery: {service_name} {self.instance.instance_id} ({host}:{port})"
        )
        return self.instance

    async def heartbeat(self) -> None:
        """Продлевает lease; если lease уже истёк, регистрируется заново."""
        if self.instance is None:
            return
        path = f"/api/discovery/instances/{self.instance.service_name}/{self.instance.instance_id}/heartbeat"
        try:
            await self.registry.request("PUT", path)
        except ShopError as e:
            if e.status_code != 404:
                raise
            await self._reregister()

    async def _reregister(self) -> None:
        if self.instance is None:
            return
        await log_warning(f"Lease {self.instance.instance_id} истёк, повторная регистрация")
        await self.register(
            self.instance.service_name,
            self.instance.host,
            self.instance.port,
            self.instance.metadata,
        )

    async def deregister(self) -> None:
        if self.instance is None:
            return
        path = f"/api/discovery/instances/{self.instance.service_name}/{self.instance.instance_id}"
        try:
            await self.registry.request("DELETE", path)
        except ShopError as e:
            await log_warning(f"Не удалось снять регистрацию {self.instance.instance_id}: {e.message}")
        self.instance = None

    async def start(
        self,
        service_name: str,
        host: str,
        port: int,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Регистрирует сервис и запускает фоновый heartbeat."""
        if not self.enabled:
            return
        try:
            await self.register(service_name, host, port, metadata)
        except ShopError as e:
            # Сервис работает и без реестра: клиенты используют статические адреса
            await log_warning(f"Discovery недоступен, регистрация отложена: {e.message}")
            self.instance = ServiceInstance(
                service_name=service_name,
                instance_id="",
                host=host,
                port=port,
                metadata=metadata or {},
            )
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def stop(self) -> None:
        """Останавливает heartbeat и снимает регистрацию."""
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
        if self.instance is not None and self.instance.instance_id:
            await self.deregister()
        await self.registry.close()

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                if self.instance is not None and not self.instance.instance_id:
                    await self.register(
                        self.instance.service_name,
                        self.instance.host,
                        self.instance.port,
                        self.instance.metadata,
                    )
                else:
                    await self.heartbeat()
            except ShopError as e:
                await log_warning(f"Heartbeat в discovery не удался: {e.message}")

    # =========================================================================
    # РАЗРЕШЕНИЕ АДРЕСОВ
    # =========================================================================

    async def instances(self, service_name: str) -> list[ServiceInstance]:
        """Живые экземпляры сервиса (кэшируются на cache_ttl секунд)."""
        cached = self._cache.get(service_name)
        now = time.monotonic()
        if cached is not None and now - cached[0] < self.cache_ttl:
            return cached[1]

        data = await self.registry.get_json(f"/api/discovery/services/{service_name}")
        instances = [ServiceInstance.model_validate(item) for item in data]
        self._cache[service_name] = (now, instances)
        return instances

    async def resolve(self, service_name: str) -> str:
        """
        Возвращает base_url экземпляра сервиса.

        Round-robin по живым экземплярам; при пустом или недоступном
        реестре используется статический адрес из конфигурации.
        """
        if not self.enabled:
            return self.fallback(service_name)

        try:
            instances = await self.instances(service_name)
        except ShopError as e:
            await log_debug(f"Discovery: {service_name} не разрешён ({e.error_code}), статический адрес")
            return self.fallback(service_name)

        if not instances:
            return self.fallback(service_name)

        counter = self._counters.setdefault(service_name, itertools.count())
        return instances[next(counter) % len(instances)].base_url


async def register_service(service_name: str) -> DiscoveryClient:
    """Создаёт DiscoveryClient и регистрирует текущий сервис в реестре."""
    from microshop.config import settings

    client = DiscoveryClient.from_settings()
    _, port = settings.deployment.service_address(service_name)
    await client.start(
        service_name,
        settings.discovery.INSTANCE_HOST,
        port,
        metadata={"version": settings.system.VERSION},
    )
    return client
