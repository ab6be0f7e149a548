import asyncio
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from pydantic import ValidationError as SchemaValidationError

from ..events.bus import CART_INVALIDATED, CART_UPDATED, ORDER_PLACED, PAYMENT_CONFIRMED
from ..exceptions import ClientError, ValidationError
from ..money import from_minor_units
from ..schemas.cart import Cart
from ..schemas.cart_item import CartItemAdd
from ..schemas.location import ProductDescriptor
from .reconciliation import merge_carts

logger = logging.getLogger(__name__)


class CartService:
    """Локальная копия корзины, синхронизируемая с сервером.

    Каждый ответ сервера сливается с текущей корзиной (см. ``merge_carts``)
    в порядке прихода ответов и сразу пишется в локальный кэш. Мутации
    одной позиции выполняются строго по очереди, разные позиции могут
    обновляться параллельно.
    """

    def __init__(self, context):
        self.context = context
        self.api = context.api
        self.persistence = context.persistence
        self.events = context.events

        self.cart: Optional[Cart] = None
        self.loading = False
        self.last_error: Optional[Exception] = None

        self._pending: Dict[int, int] = {}
        self._locks: Dict[int, asyncio.Lock] = {}

        self.events.register_handler(PAYMENT_CONFIRMED, self._on_order_placed)
        self.events.register_handler(ORDER_PLACED, self._on_order_placed)

    # Состояние

    @property
    def pending_ids(self) -> FrozenSet[int]:
        """Позиции, по которым идёт запрос, для индикатора загрузки в строке"""
        return frozenset(item_id for item_id, count in self._pending.items() if count > 0)

    def is_pending(self, item_id: int) -> bool:
        return self._pending.get(item_id, 0) > 0

    @property
    def total_minor(self) -> int:
        return self.cart.total_minor if self.cart else 0

    @property
    def total(self) -> Decimal:
        return from_minor_units(self.total_minor)

    # Загрузка

    async def activate(self) -> Optional[Cart]:
        """Показывает кэш сразу и обновляет корзину в фоне"""
        cached = self.persistence.load_cart()
        if cached is not None:
            self.cart = cached
            logger.info(f"📦 Restored cached cart {cached.id} ({len(cached.items)} items)")
            await self._publish_cart_updated()
        return await self.refresh()

    async def refresh(self) -> Optional[Cart]:
        """Получить актуальную корзину с сервера.

        Без корзины в памяти ошибка блокирующая и пробрасывается, иначе
        это неудачное фоновое обновление и оно только логируется.
        """
        if self.cart is None:
            self.loading = True

        try:
            fresh = await self.api.fetch_cart(self.context.session_id)
        except (ClientError, SchemaValidationError) as e:
            if self.cart is None:
                self.last_error = e
                logger.error(f"❌ Unable to load cart: {e}")
                raise
            logger.warning(f"⚠️ Background cart refresh failed: {e}")
            return self.cart
        finally:
            self.loading = False

        await self._commit(merge_carts(self.cart, fresh))
        self.last_error = None
        return self.cart

    async def create_cart(self, table_session_id: Optional[int] = None) -> Cart:
        """Создать новую корзину для визита за стол"""
        cart = await self.api.create_cart(self.context.session_id, table_session_id)
        await self._commit(cart)
        logger.info(f"🛒 Cart {cart.id} created for session {self.context.session_id}")
        return cart

    async def start_table_visit(self, table_id: int) -> Cart:
        """Открыть сессию стола и создать под неё корзину"""
        table_session = await self.api.start_table_session(table_id)
        logger.info(f"🍽️ Table session {table_session.session_id} started for table {table_id}")
        return await self.create_cart(table_session.session_id)

    # Мутации

    async def add(self, product: ProductDescriptor, quantity: int = 1) -> Cart:
        """Добавить товар в корзину"""
        product_id = product.product_id or product.id
        variant_id = product.product_variant_id or product.id
        if product_id is None and variant_id is None:
            raise ValidationError("Missing Product ID")
        if quantity < 1:
            raise ValidationError(f"Quantity must be at least 1, got {quantity}")

        payload = CartItemAdd(
            session_id=self.context.session_id,
            product_id=product_id if product_id is not None else variant_id,
            product_variant_id=variant_id if variant_id is not None else product_id,
            uom_id=product.uom_id or 1,
            uom_price=product.price,
            quantity=quantity,
        )

        updated = await self.api.add_to_cart(payload)
        await self._commit(merge_carts(self.cart, updated))
        logger.info(f"➕ Added product {payload.product_id} to cart {updated.id}")
        return self.cart

    async def update_quantity(self, item_id: int, quantity: int) -> Optional[Cart]:
        """Изменить количество; до нуля уменьшают только через remove"""
        if quantity < 1:
            return self.cart

        async with self._track(item_id):
            try:
                updated = await self.api.update_cart_item(self.context.session_id, item_id, quantity)
            except (ClientError, SchemaValidationError) as e:
                logger.error(f"❌ Failed to update item {item_id}: {e}")
                return self.cart

            await self._commit(merge_carts(self.cart, updated))
            return self.cart

    async def remove(self, item_id: int) -> Optional[Cart]:
        """Удалить позицию; подтверждение пользователя остаётся за вызывающим"""
        async with self._track(item_id):
            try:
                updated = await self.api.remove_cart_item(self.context.session_id, item_id)
            except (ClientError, SchemaValidationError) as e:
                logger.error(f"❌ Failed to remove item {item_id}: {e}")
                return self.cart

            await self._commit(merge_carts(self.cart, updated))
            logger.info(f"🗑️ Removed item {item_id} from cart {updated.id}")
            return self.cart

    async def invalidate(self):
        """Забыть корзину после оформления заказа"""
        previous = self.cart
        self.cart = None
        self.last_error = None
        self.persistence.clear_cart()
        if previous is not None:
            logger.info(f"🧹 Cart {previous.id} superseded by placed order")
        await self.events.publish(CART_INVALIDATED, {"cart_id": previous.id if previous else None})

    def close(self):
        self.events.unregister_handler(PAYMENT_CONFIRMED, self._on_order_placed)
        self.events.unregister_handler(ORDER_PLACED, self._on_order_placed)

    # Внутреннее

    @asynccontextmanager
    async def _track(self, item_id: int):
        """Отмечает позицию как ожидающую и выстраивает её мутации в очередь"""
        self._pending[item_id] = self._pending.get(item_id, 0) + 1
        lock = self._locks.setdefault(item_id, asyncio.Lock())
        try:
            async with lock:
                yield
        finally:
            self._pending[item_id] -= 1
            if self._pending[item_id] <= 0:
                del self._pending[item_id]
                self._locks.pop(item_id, None)

    async def _commit(self, cart: Cart):
        self.cart = cart
        self.persistence.save_cart(cart)
        await self._publish_cart_updated()

    async def _publish_cart_updated(self):
        await self.events.publish(CART_UPDATED, {
            "cart_id": self.cart.id,
            "total_items": self.cart.total_items,
            "total_minor": self.total_minor,
        })

    async def _on_order_placed(self, payload: dict, event: dict):
        await self.invalidate()
