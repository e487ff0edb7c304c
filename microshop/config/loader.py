# microshop/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секреты и адреса сервисов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "microshop"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "all"


class DeploymentSettings(BaseModel):
    """Адреса и порты микросервисов (статическая конфигурация, fallback для discovery)."""
    GATEWAY_HOST: str = "gateway"
    GATEWAY_PORT: int = 8080
    DISCOVERY_HOST: str = "discovery"
    DISCOVERY_PORT: int = 8761
    CATALOG_SERVICE_HOST: str = "catalog_service"
    CATALOG_SERVICE_PORT: int = 8081
    CART_SERVICE_HOST: str = "cart_service"
    CART_SERVICE_PORT: int = 8082
    ORDER_SERVICE_HOST: str = "order_service"
    ORDER_SERVICE_PORT: int = 8083
    PAYMENT_SERVICE_HOST: str = "payment_service"
    PAYMENT_SERVICE_PORT: int = 8084
    INVENTORY_SERVICE_HOST: str = "inventory_service"
    INVENTORY_SERVICE_PORT: int = 8085

    def service_address(self, service_name: str) -> tuple[str, int]:
        """
        Возвращает (host, port) сервиса из статической конфигурации.

        Args:
            service_name: Имя сервиса (catalog, cart, order, payment, inventory, discovery, gateway)

        Raises:
            KeyError: Если сервис неизвестен
        """
        prefix = _SERVICE_PREFIXES[service_name]
        return getattr(self, f"{prefix}_HOST"), getattr(self, f"{prefix}_PORT")

    def service_url(self, service_name: str) -> str:
        """Возвращает базовый URL сервиса."""
        host, port = self.service_address(service_name)
        return f"http://{host}:{port}"


_SERVICE_PREFIXES: dict[str, str] = {
    "gateway": "GATEWAY",
    "discovery": "DISCOVERY",
    "catalog": "CATALOG_SERVICE",
    "cart": "CART_SERVICE",
    "order": "ORDER_SERVICE",
    "payment": "PAYMENT_SERVICE",
    "inventory": "INVENTORY_SERVICE",
}


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "microshop"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 2
    DB_MAX_POOL_SIZE: int = 10
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "shop"
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RedisTTLSettings(BaseModel):
    """Настройки TTL кэша и временных ключей (секунды)."""
    PRODUCT_TTL: int = 300
    PAYMENT_TTL: int = 3600
    CART_TTL: int = 604800
    IDEMPOTENCY_TTL: int = 86400


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "shop.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        env_pass = os.getenv("RABBITMQ_PASSWORD", "")
        if env_pass:
            return env_pass
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class ResilienceSettings(BaseModel):
    """Таймауты, повторы и circuit breaker для межсервисных вызовов."""
    HTTP_TIMEOUT: float = 5.0
    HTTP_RETRY_ATTEMPTS: int = 3
    HTTP_RETRY_BACKOFF: float = 0.2
    HTTP_RETRY_BACKOFF_MAX: float = 2.0
    CB_FAILURE_THRESHOLD: int = 5
    CB_RESET_TIMEOUT: float = 30.0


class DiscoverySettings(BaseModel):
    """Настройки реестра сервисов."""
    DISCOVERY_ENABLED: bool = True
    DISCOVERY_LEASE_TTL: int = 30
    DISCOVERY_HEARTBEAT_INTERVAL: int = 10
    INSTANCE_HOST: str = "localhost"


class CheckoutSettings(BaseModel):
    """Настройки корзины, оформления заказа и склада."""
    CURRENCY: str = "EUR"
    TAX_RATE_PERCENT: Decimal = Decimal("20")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("50.00")
    SHIPPING_FEE: Decimal = Decimal("4.99")
    MAX_CART_ITEMS: int = 50
    MAX_ITEM_QUANTITY: int = 99
    LOW_STOCK_THRESHOLD: int = 5


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    redis_ttl: RedisTTLSettings = Field(default_factory=RedisTTLSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    resilience: ResilienceSettings = Field(default_factory=ResilienceSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    checkout: CheckoutSettings = Field(default_factory=CheckoutSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и хосты переопределяются из переменных окружения.
        """
        config_data = load_config_json()

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        def pick(section: type[BaseModel], env_keys: tuple[str, ...] = ()) -> dict[str, Any]:
            """Собирает значения секции: env (для env_keys) > config.json > default."""
            values: dict[str, Any] = {}
            for name in section.model_fields:
                if name in env_keys and os.getenv(name) is not None:
                    values[name] = os.getenv(name)
                elif name in data:
                    values[name] = data[name]
            return values

        deployment_env = tuple(
            name for name in DeploymentSettings.model_fields if name.endswith("_HOST")
        )

        return cls(
            system=SystemSettings(**pick(SystemSettings, ("COMPONENT_MODE",))),
            deployment=DeploymentSettings(**pick(DeploymentSettings, deployment_env)),
            logging=LoggingSettings(**pick(LoggingSettings, ("LOG_LEVEL",))),
            database=DatabaseSettings(
                **pick(DatabaseSettings, ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD"))
            ),
            redis=RedisSettings(**pick(RedisSettings, ("REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD"))),
            redis_ttl=RedisTTLSettings(**pick(RedisTTLSettings)),
            rabbitmq=RabbitMQSettings(
                **pick(RabbitMQSettings, ("RABBITMQ_HOST", "RABBITMQ_PORT", "RABBITMQ_USER", "RABBITMQ_PASSWORD"))
            ),
            resilience=ResilienceSettings(**pick(ResilienceSettings)),
            discovery=DiscoverySettings(**pick(DiscoverySettings, ("DISCOVERY_ENABLED", "INSTANCE_HOST"))),
            checkout=CheckoutSettings(**pick(CheckoutSettings)),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    # Загружаем .env файл
    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
