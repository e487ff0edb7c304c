# microshop/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели для межсервисного взаимодействия.
"""

from microshop.shared.models.common import (
    PaginationParams,
    PaginatedResponse,
    ErrorResponse,
    HealthStatus,
    quantize_money,
)
from microshop.shared.models.catalog import ProductDTO
from microshop.shared.models.cart import CartDTO, CartItemDTO
from microshop.shared.models.order import OrderDTO, OrderItemDTO, OrderStatus
from microshop.shared.models.payment import PaymentDTO, PaymentStatus, PaymentMethod
from microshop.shared.models.inventory import StockDTO, ReservationDTO, ReservationStatus
from microshop.shared.models.discovery import ServiceInstance

__all__ = [
    # Catalog
    "ProductDTO",
    # Cart
    "CartDTO",
    "CartItemDTO",
    # Order
    "OrderDTO",
    "OrderItemDTO",
    "OrderStatus",
    # Payment
    "PaymentDTO",
    "PaymentStatus",
    "PaymentMethod",
    # Inventory
    "StockDTO",
    "ReservationDTO",
    "ReservationStatus",
    # Discovery
    "ServiceInstance",
    # Common
    "PaginationParams",
    "PaginatedResponse",
    "ErrorResponse",
    "HealthStatus",
    "quantize_money",
]
