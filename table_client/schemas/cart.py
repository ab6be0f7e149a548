from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, model_validator

from ..money import from_minor_units
from .cart_item import CartItem, classify_item, parse_quantity


class Cart(BaseModel):
    id: int
    session_id: str
    table_id: Optional[int] = None
    items: List[CartItem] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_items(cls, data):
        """Позиции с количеством меньше 1 в корзине не живут"""
        if not isinstance(data, dict):
            return data
        raw_items = data.get("items") or []
        items = []
        for raw in raw_items:
            item = classify_item(raw)
            if parse_quantity(item.get("quantity", 0)) < 1:
                continue
            items.append(item)
        return {**data, "items": items}

    @property
    def total_minor(self) -> int:
        return sum(item.line_total_minor for item in self.items)

    @property
    def total(self) -> Decimal:
        return from_minor_units(self.total_minor)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def find_item(self, item_id: int):
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class CartCreate(BaseModel):
    session_id: str
    table_session_id: Optional[int] = None
