from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..money import to_decimal


class Location(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[int] = None

    model_config = ConfigDict(extra="allow")


class Table(BaseModel):
    id: int
    business_location_id: Optional[int] = None
    zone_id: Optional[int] = None
    table_code: Optional[str] = None
    display_name: str
    seats: int = 0
    qr_public_code: Optional[str] = None
    is_active: bool = True


class Zone(BaseModel):
    id: int
    business_location_id: Optional[int] = None
    zone_no: Optional[int] = None
    name: str
    tables: List[Table] = []

    @property
    def active_tables(self) -> List[Table]:
        return [table for table in self.tables if table.is_active]


class TableSession(BaseModel):
    session_id: int
    table_id: int
    location_id: Optional[int] = None
    zone_id: Optional[int] = None
    status: Optional[str] = None
    started_at: Optional[str] = None
    expires_at: Optional[str] = None


class ProductDescriptor(BaseModel):
    """Товар меню в том виде, в каком его добавляют в корзину"""
    id: Optional[int] = None
    name: str = "Unknown Item"
    description: str = ""
    image: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), ge=0)
    category: str = "Other"
    sku: Optional[str] = None
    product_id: Optional[int] = None
    product_variant_id: Optional[int] = None
    uom_id: Optional[int] = None

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, value):
        return to_decimal(value if value is not None else 0)

    @classmethod
    def from_variant_payload(cls, item: dict) -> "ProductDescriptor":
        """Строка пагинированного /products: id варианта, товар вложен"""
        details = item.get("product") or {}
        return cls(
            id=item.get("id"),
            name=item.get("fullName") or details.get("name") or "Unknown Item",
            description=details.get("product_description") or details.get("product_short_description") or "",
            image=details.get("product_image") or details.get("image"),
            price=item.get("default_selling_price") or 0,
            category=details.get("category_name") or "Other",
            sku=item.get("variation_sku") or details.get("sku"),
            product_id=item.get("product_id"),
            product_variant_id=item.get("id"),
            uom_id=details.get("uom_id"),
        )
