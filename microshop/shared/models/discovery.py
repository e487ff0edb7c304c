# microshop/shared/models/discovery.py
"""
DTO реестра сервисов.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field


class ServiceInstance(BaseModel):
    """Зарегистрированный экземпляр сервиса."""

    service_name: str
    instance_id: str
    host: str
    port: int
    metadata: dict[str, Any] = Field(default_factory=dict)
    registered_at: datetime | None = None
    last_heartbeat: datetime | None = None

    @computed_field  # type: ignore[misc]
    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class RegisterInstanceRequest(BaseModel):
    """Регистрация экземпляра. instance_id генерируется, если не передан."""

    service_name: str = Field(min_length=1, max_length=64)
    host: str = Field(min_length=1, max_length=255)
    port: int = Field(ge=1, le=65535)
    instance_id: str | None = Field(default=None, max_length=128)
    metadata: dict[str, Any] = Field(default_factory=dict)
