import logging
import uuid
from typing import Optional

from ..config import settings
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class SessionIdentity:
    """Анонимный идентификатор сессии, общий для корзины и заказов"""

    def __init__(self, store: KeyValueStore, storage_key: Optional[str] = None):
        self.store = store
        self.storage_key = storage_key or settings.session_storage_key
        self._session_id: Optional[str] = None

    def get(self) -> str:
        """Возвращает сохранённый id или создаёт новый"""
        if self._session_id:
            return self._session_id

        session_id = self.store.get(self.storage_key)
        if not session_id or not session_id.strip():
            session_id = uuid.uuid4().hex
            self.store.set(self.storage_key, session_id)
            logger.info(f"🆕 Created session id {session_id}")

        self._session_id = session_id
        return session_id

    def __str__(self) -> str:
        return self.get()
