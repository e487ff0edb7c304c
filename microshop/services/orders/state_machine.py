# microshop/services/orders/state_machine.py
"""
Допустимые переходы статусов заказа.
"""

from __future__ import annotations

from microshop.common.exceptions import InvalidTransitionError
from microshop.shared.models.order import OrderStatus


def _value(status: OrderStatus | str) -> str:
    return status.value if isinstance(status, OrderStatus) else status


class OrderStateMachine:
    ALLOWED_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
        OrderStatus.PENDING: [OrderStatus.PAID, OrderStatus.CANCELLED],
        OrderStatus.PAID: [OrderStatus.SHIPPED, OrderStatus.CANCELLED],
        OrderStatus.SHIPPED: [OrderStatus.DELIVERED],
        OrderStatus.DELIVERED: [],
        OrderStatus.CANCELLED: [],
    }

    # Колонка с временем перехода в статус
    TIMESTAMP_COLUMNS: dict[OrderStatus, str] = {
        OrderStatus.PAID: "paid_at",
        OrderStatus.SHIPPED: "shipped_at",
        OrderStatus.DELIVERED: "delivered_at",
        OrderStatus.CANCELLED: "cancelled_at",
    }

    @staticmethod
    def can_transition(current_status: OrderStatus | str, new_status: OrderStatus | str) -> bool:
        try:
            curr = OrderStatus(current_status)
            new = OrderStatus(new_status)
        except ValueError:
            return False
        return new in OrderStateMachine.ALLOWED_TRANSITIONS.get(curr, [])

    @staticmethod
    def ensure_transition(current_status: OrderStatus | str, new_status: OrderStatus | str) -> None:
        """
        Raises:
            InvalidTransitionError: invalid_status_transition
        """
        if not OrderStateMachine.can_transition(current_status, new_status):
            current, requested = _value(current_status), _value(new_status)
            raise InvalidTransitionError(
                f"Переход {current} -> {requested} недопустим",
                details={"current_status": current, "requested_status": requested},
            )

    @staticmethod
    def is_terminal(status: OrderStatus | str) -> bool:
        return not OrderStateMachine.ALLOWED_TRANSITIONS.get(OrderStatus(status), [])
