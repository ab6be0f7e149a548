from .bus import (
    CART_INVALIDATED,
    CART_UPDATED,
    ORDER_PAYMENT_CONFIRMED,
    ORDER_PLACED,
    PAYMENT_CANCELLED,
    PAYMENT_CODE_GENERATED,
    PAYMENT_CONFIRMED,
    PAYMENT_FAILED,
    StateEventBus,
)

__all__ = [
    "StateEventBus",
    "CART_UPDATED",
    "CART_INVALIDATED",
    "PAYMENT_CODE_GENERATED",
    "PAYMENT_CONFIRMED",
    "PAYMENT_CANCELLED",
    "PAYMENT_FAILED",
    "ORDER_PLACED",
    "ORDER_PAYMENT_CONFIRMED",
]
