"""Фабрики тестовых ответов сервера."""
import asyncio
from decimal import Decimal
from typing import List, Optional

from table_client.schemas.cart import Cart
from table_client.schemas.payment import (
    PaymentCodeRecord,
    PaymentCodeStatus,
    PaymentFamily,
    PaymentStatusResult,
)


def item_payload(
        item_id: int,
        quantity=1,
        price="10.00",
        product_id: Optional[int] = None,
        image: Optional[str] = None,
        product_name: Optional[str] = None,
        variant_name: Optional[str] = None,
        full_name: Optional[str] = None,
        cart_id: int = 1,
) -> dict:
    product = None
    if image is not None or product_name is not None:
        product = {"name": product_name, "product_image": image}
    variant = {"fullName": variant_name} if variant_name is not None else None
    return {
        "id": item_id,
        "cart_id": cart_id,
        "product_id": product_id or item_id * 100,
        "product_variant_id": (product_id or item_id * 100) + 1,
        "uom_id": 1,
        "quantity": quantity,
        "uom_price": price,
        "product_full_name": full_name,
        "product": product,
        "variant": variant,
    }


def rich_item_payload(item_id: int, quantity=1, price="10.00", **kwargs) -> dict:
    return item_payload(
        item_id,
        quantity=quantity,
        price=price,
        image=kwargs.pop("image", f"https://img.test/{item_id}.jpg"),
        product_name=kwargs.pop("product_name", f"Dish {item_id}"),
        variant_name=kwargs.pop("variant_name", f"Dish {item_id} - Regular"),
        full_name=kwargs.pop("full_name", f"Dish {item_id} (Regular)"),
        **kwargs,
    )


def make_cart(items: List[dict], cart_id: int = 1, session_id: str = "session-test") -> Cart:
    return Cart.model_validate({"id": cart_id, "session_id": session_id, "items": items})


def make_record(
        token: str = "tok-1",
        family: PaymentFamily = PaymentFamily.WALLET,
        amount: str = "30.00"
) -> PaymentCodeRecord:
    return PaymentCodeRecord(
        token=token,
        family=family,
        payment_id=501,
        qr_type="staff" if family is PaymentFamily.STAFF else "promptpay",
        qr_code_url=f"https://qr.test/{token}.png",
        amount=Decimal(amount),
        currency="THB",
    )


def status(value: str) -> PaymentStatusResult:
    return PaymentStatusResult(status=PaymentCodeStatus(value), payment_id=501)


async def settle(rounds: int = 20):
    """Дать запланированным задачам поработать несколько итераций цикла."""
    for _ in range(rounds):
        await asyncio.sleep(0)
