# microshop/services/discovery/routes.py
"""
HTTP API реестра сервисов.

Endpoints:
- POST   /api/discovery/instances                                   - регистрация
- PUT    /api/discovery/instances/{service}/{instance_id}/heartbeat - продление lease
- DELETE /api/discovery/instances/{service}/{instance_id}           - снятие регистрации
- GET    /api/discovery/services                                    - все сервисы
- GET    /api/discovery/services/{service}                          - экземпляры сервиса
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from microshop.services.discovery.dependencies import get_registry
from microshop.services.discovery.service import DiscoveryRegistry
from microshop.shared.models.common import ErrorResponse
from microshop.shared.models.discovery import RegisterInstanceRequest, ServiceInstance

router = APIRouter(prefix="/api/discovery", tags=["Discovery"])

RegistryDep = Annotated[DiscoveryRegistry, Depends(get_registry)]


@router.post(
    "/instances",
    response_model=ServiceInstance,
    status_code=status.HTTP_201_CREATED,
    summary="Зарегистрировать экземпляр",
)
async def register_instance(request: RegisterInstanceRequest, registry: RegistryDep) -> ServiceInstance:
    return await registry.register(request)


@router.put(
    "/instances/{service_name}/{instance_id}/heartbeat",
    response_model=ServiceInstance,
    responses={404: {"model": ErrorResponse}},
    summary="Продлить lease",
)
async def heartbeat(service_name: str, instance_id: str, registry: RegistryDep) -> ServiceInstance:
    return await registry.heartbeat(service_name, instance_id)


@router.delete(
    "/instances/{service_name}/{instance_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Снять регистрацию",
)
async def deregister_instance(service_name: str, instance_id: str, registry: RegistryDep) -> Response:
    await registry.deregister(service_name, instance_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/services", response_model=dict[str, list[ServiceInstance]], summary="Все сервисы")
async def list_services(registry: RegistryDep) -> dict[str, list[ServiceInstance]]:
    return await registry.get_all()


@router.get("/services/{service_name}", response_model=list[ServiceInstance], summary="Экземпляры сервиса")
async def get_service_instances(service_name: str, registry: RegistryDep) -> list[ServiceInstance]:
    return await registry.get_instances(service_name)
