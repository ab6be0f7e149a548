from decimal import Decimal
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..money import to_decimal, to_minor_units

UNKNOWN_PRODUCT_NAME = "Unknown Product"


class ProductInfo(BaseModel):
    """Вложенные данные товара из GET /cart"""
    name: Optional[str] = None
    product_image: Optional[str] = None
    image: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @property
    def is_rich(self) -> bool:
        if self.product_image or self.image:
            return True
        return len(self.model_dump(exclude_none=True)) > 1


class VariantInfo(BaseModel):
    """Вложенные данные варианта товара"""
    fullName: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @property
    def is_rich(self) -> bool:
        if self.fullName:
            return True
        return len(self.model_dump(exclude_none=True)) > 1


def has_rich_product(product: Optional[ProductInfo]) -> bool:
    return product is not None and product.is_rich


def has_rich_variant(variant: Optional[VariantInfo]) -> bool:
    return variant is not None and variant.is_rich


def has_rich_full_name(name: Optional[str]) -> bool:
    return bool(name) and name != UNKNOWN_PRODUCT_NAME


def parse_quantity(value: Any) -> int:
    """Сервер отдаёт количество строкой вида "2.0000" """
    return int(to_decimal(value))


class CartItemBase(BaseModel):
    id: int
    cart_id: Optional[int] = None
    product_id: int
    product_variant_id: Optional[int] = None
    uom_id: Optional[int] = None
    quantity: int
    uom_price: Decimal = Field(..., ge=0)
    product_full_name: Optional[str] = None
    product: Optional[ProductInfo] = None
    variant: Optional[VariantInfo] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value):
        return parse_quantity(value)

    @field_validator("uom_price", mode="before")
    @classmethod
    def _parse_price(cls, value):
        return to_decimal(value)

    @property
    def unit_price_minor(self) -> int:
        return to_minor_units(self.uom_price)

    @property
    def line_total_minor(self) -> int:
        return self.quantity * self.unit_price_minor

    @property
    def is_enriched(self) -> bool:
        return (
            has_rich_product(self.product)
            and has_rich_variant(self.variant)
            and has_rich_full_name(self.product_full_name)
        )


class FullCartItem(CartItemBase):
    """Позиция со всеми данными для отображения"""
    kind: Literal["full"] = "full"


class PartialCartItem(CartItemBase):
    """Позиция из урезанного ответа мутации"""
    kind: Literal["partial"] = "partial"


CartItem = Annotated[Union[FullCartItem, PartialCartItem], Field(discriminator="kind")]


def classify_item(data: Any) -> Dict[str, Any]:
    """Проставляет kind по фактической полноте данных позиции"""
    if isinstance(data, CartItemBase):
        data = data.model_dump()
    probe = PartialCartItem.model_validate({**data, "kind": "partial"})
    return {**data, "kind": "full" if probe.is_enriched else "partial"}


def build_item(data: Any) -> Union[FullCartItem, PartialCartItem]:
    data = classify_item(data)
    if data["kind"] == "full":
        return FullCartItem.model_validate(data)
    return PartialCartItem.model_validate(data)


class CartItemAdd(BaseModel):
    """Тело запроса POST /cart/add"""
    session_id: str
    product_id: int
    product_variant_id: int
    uom_id: int
    uom_price: Decimal
    quantity: int = Field(..., ge=1)


class CartItemUpdate(BaseModel):
    session_id: str
    cart_item_id: int
    quantity: int = Field(..., ge=1)
