# app/domain/order_status.py
from enum import Enum
from typing import Dict, FrozenSet


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    PICKED_UP = "picked_up"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    TRANSFER = "transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ActorType(str, Enum):
    USER = "User"
    PHARMACY = "Pharmacy"


class CancelledBy(str, Enum):
    USER = "user"
    PHARMACY = "pharmacy"
    SYSTEM = "system"


# the only legal edges, anything else is an InvalidTransition
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.CONFIRMED, OrderStatus.DECLINED, OrderStatus.CANCELLED}
    ),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset(
        {OrderStatus.READY_FOR_PICKUP, OrderStatus.PICKED_UP, OrderStatus.SHIPPED}
    ),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.PICKED_UP}),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.DECLINED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# statuses which still hold reserved stock and may hand it back
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
DECLINABLE_STATUSES = frozenset({OrderStatus.PENDING})


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in TRANSITIONS[current]


def is_final(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES
