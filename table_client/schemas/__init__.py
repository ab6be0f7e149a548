from .cart import Cart, CartCreate
from .cart_item import CartItem, CartItemAdd, CartItemUpdate, FullCartItem, PartialCartItem, ProductInfo, VariantInfo
from .location import Location, ProductDescriptor, Table, TableSession, Zone
from .order import Order, OrderHistory, OrderLine, OrderPaymentStatus, OrderStatus
from .payment import (
    ManualPaymentAck,
    ManualPaymentRequest,
    PaymentCodeRecord,
    PaymentCodeRequest,
    PaymentCodeStatus,
    PaymentFamily,
    PaymentMethod,
    PaymentStatusResult,
)

__all__ = [
    "Cart",
    "CartCreate",
    "CartItem",
    "CartItemAdd",
    "CartItemUpdate",
    "FullCartItem",
    "PartialCartItem",
    "ProductInfo",
    "VariantInfo",
    "Location",
    "ProductDescriptor",
    "Table",
    "TableSession",
    "Zone",
    "Order",
    "OrderHistory",
    "OrderLine",
    "OrderPaymentStatus",
    "OrderStatus",
    "ManualPaymentAck",
    "ManualPaymentRequest",
    "PaymentCodeRecord",
    "PaymentCodeRequest",
    "PaymentCodeStatus",
    "PaymentFamily",
    "PaymentMethod",
    "PaymentStatusResult",
]
