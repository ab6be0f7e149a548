"""Запись состояния корзины, платежа и экрана в локальное хранилище."""
import json
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as SchemaValidationError

from ..config import Settings, settings as default_settings
from ..schemas.cart import Cart
from ..schemas.location import Location, Table
from ..schemas.payment import PaymentCodeRecord
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

VIEW_MODES = ("menu", "cart", "history")


class PersistenceBridge:
    """Сериализация состояния в key-value хранилище.

    Повреждённые записи не ломают запуск: они логируются, удаляются и
    читаются как отсутствующие.
    """

    def __init__(self, store: KeyValueStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or default_settings

    def _load(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        raw = self.store.get(key)
        if not raw:
            return None
        try:
            return model.model_validate_json(raw)
        except (SchemaValidationError, ValueError) as e:
            logger.warning(f"⚠️ Failed to parse cached {key}, discarding: {e}")
            self.store.remove(key)
            return None

    def _save(self, key: str, value: Optional[BaseModel]):
        if value is None:
            self.store.remove(key)
        else:
            self.store.set(key, value.model_dump_json())

    # Корзина

    def load_cart(self) -> Optional[Cart]:
        return self._load(self.settings.cart_storage_key, Cart)

    def save_cart(self, cart: Optional[Cart]):
        self._save(self.settings.cart_storage_key, cart)

    def clear_cart(self):
        self.store.remove(self.settings.cart_storage_key)

    # Платёж по коду

    def load_payment(self) -> Optional[PaymentCodeRecord]:
        return self._load(self.settings.payment_storage_key, PaymentCodeRecord)

    def save_payment(self, record: Optional[PaymentCodeRecord]):
        self._save(self.settings.payment_storage_key, record)

    def clear_payment(self):
        self.store.remove(self.settings.payment_storage_key)

    # Токен заказа с ручной оплатой

    def load_order_token(self) -> Optional[str]:
        return self.store.get(self.settings.order_token_storage_key) or None

    def save_order_token(self, token: Optional[str]):
        if token:
            self.store.set(self.settings.order_token_storage_key, token)
        else:
            self.store.remove(self.settings.order_token_storage_key)

    # Состояние экрана

    def load_location(self) -> Optional[Location]:
        return self._load(self.settings.location_storage_key, Location)

    def save_location(self, location: Optional[Location]):
        self._save(self.settings.location_storage_key, location)
        if location is None:
            # Стол без локации не восстанавливаем
            self.store.remove(self.settings.table_storage_key)

    def load_table(self) -> Optional[Table]:
        if not self.store.get(self.settings.location_storage_key):
            return None
        return self._load(self.settings.table_storage_key, Table)

    def save_table(self, table: Optional[Table]):
        self._save(self.settings.table_storage_key, table)

    def load_view_mode(self) -> str:
        raw = self.store.get(self.settings.view_mode_storage_key)
        try:
            mode = json.loads(raw) if raw else "menu"
        except ValueError:
            mode = "menu"
        return mode if mode in VIEW_MODES else "menu"

    def save_view_mode(self, mode: str):
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {mode}")
        if mode == "menu":
            self.store.remove(self.settings.view_mode_storage_key)
        else:
            self.store.set(self.settings.view_mode_storage_key, json.dumps(mode))
