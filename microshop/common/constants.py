# microshop/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ServiceName(str, Enum):
    """Имена микросервисов (ключи в реестре и в DeploymentSettings)."""
    GATEWAY = "gateway"
    DISCOVERY = "discovery"
    CATALOG = "catalog"
    CART = "cart"
    ORDER = "order"
    PAYMENT = "payment"
    INVENTORY = "inventory"


# Заголовки HTTP
REQUEST_ID_HEADER = "X-Request-ID"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
