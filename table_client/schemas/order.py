from decimal import Decimal
from enum import Enum as PyEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ..money import to_decimal


class OrderStatus(PyEnum):
    REQUESTED = "requested"  # Заказ принят
    PREPARING = "preparing"  # Готовится
    READY = "ready"  # Готов
    SERVED = "served"  # Подан
    CANCELLED = "cancelled"  # Отменен
    COMPLETED = "completed"  # Закрыт


# Сервер пока отдаёт старые названия статусов
_STATUS_ALIASES = {
    "pending": OrderStatus.REQUESTED,
    "cooking": OrderStatus.PREPARING,
}


def normalize_order_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    raw = str(value).lower()
    if raw in _STATUS_ALIASES:
        return _STATUS_ALIASES[raw]
    return OrderStatus(raw)


class OrderLine(BaseModel):
    product_id: Optional[int] = None
    name: str
    quantity: int
    price: Decimal
    subtotal: Optional[Decimal] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value):
        return int(to_decimal(value))


def _line_from_sale_item(item: dict) -> dict:
    variation = item.get("variation") or {}
    product = variation.get("product") or {}
    return {
        "product_id": item.get("product_id"),
        "name": variation.get("fullName") or product.get("name") or "Unknown Item",
        "quantity": item.get("quantity", 0),
        "price": to_decimal(item.get("uom_price", 0)),
        "subtotal": to_decimal(item["subtotal"]) if item.get("subtotal") is not None else None,
    }


class Order(BaseModel):
    """Заказ из истории, только для чтения"""
    id: int
    order_number: str
    status: OrderStatus
    total_amount: Decimal
    created_at: Optional[str] = None
    payment_status: Optional[str] = None
    lines: List[OrderLine] = []

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return normalize_order_status(value)

    @field_validator("total_amount", mode="before")
    @classmethod
    def _parse_total(cls, value):
        return to_decimal(value)

    @model_validator(mode="before")
    @classmethod
    def _collect_lines(cls, data):
        """Позиции берём из sale.items, иначе из details"""
        if not isinstance(data, dict) or "lines" in data:
            return data
        sale = data.get("sale") or {}
        if sale.get("items"):
            lines = [_line_from_sale_item(item) for item in sale["items"]]
        else:
            lines = [_line_from_sale_item(item) for item in data.get("details") or []]
        return {**data, "lines": lines, "payment_status": sale.get("payment_status")}


class OrderHistory(BaseModel):
    current_orders: List[Order] = []
    past_orders: List[Order] = []


class OrderPaymentStatus(BaseModel):
    """Статус оплаты заказа, оформленного через ручную оплату"""
    status: str
    order_number: Optional[str] = None

    model_config = ConfigDict(extra="allow")
