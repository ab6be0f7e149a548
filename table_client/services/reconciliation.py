"""Слияние ответа сервера с уже известной корзиной.

Ответы мутаций (add/update/remove) часто приходят с урезанными позициями:
без картинки товара, без полного имени варианта. Чтобы интерфейс не терял
эти данные, для позиций, которые есть и в старой, и в новой корзине,
каждое поле обогащения берётся из той версии, где оно заполнено.
Состав позиций всегда определяет сервер.
"""
from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel

from ..schemas.cart import Cart
from ..schemas.cart_item import (
    FullCartItem,
    PartialCartItem,
    build_item,
    has_rich_full_name,
)

AnyCartItem = Union[FullCartItem, PartialCartItem]
ModelT = TypeVar("ModelT", bound=BaseModel)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _merge_details(previous: Optional[ModelT], incoming: Optional[ModelT]) -> Optional[ModelT]:
    """Поля новой версии поверх старой; пустые значения старые не затирают"""
    if previous is None:
        return incoming
    if incoming is None:
        return previous

    merged = previous.model_dump()
    for key, value in incoming.model_dump().items():
        if not _is_blank(value):
            merged[key] = value
    return type(incoming).model_validate(merged)


def merge_item(previous: Optional[AnyCartItem], incoming: AnyCartItem) -> AnyCartItem:
    if previous is None:
        return incoming

    product = _merge_details(previous.product, incoming.product)
    variant = _merge_details(previous.variant, incoming.variant)
    full_name = (
        incoming.product_full_name
        if has_rich_full_name(incoming.product_full_name)
        else (previous.product_full_name or incoming.product_full_name)
    )

    merged = incoming.model_dump()
    merged.update(
        product=product.model_dump() if product is not None else None,
        variant=variant.model_dump() if variant is not None else None,
        product_full_name=full_name,
    )
    return build_item(merged)


def merge_carts(previous: Optional[Cart], incoming: Cart) -> Cart:
    """Новая корзина с обогащением из предыдущей"""
    if previous is None:
        return incoming

    known = {item.id: item for item in previous.items}
    items = [merge_item(known.get(item.id), item) for item in incoming.items]
    return incoming.model_copy(update={"items": items})
