import logging
from typing import Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..database import create_session_factory, create_storage_engine
from ..models.storage_entry import StorageEntry

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Интерфейс локального хранилища строковых блобов"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class InMemoryStore(KeyValueStore):
    """Хранилище в памяти процесса, для тестов и одноразовых запусков"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class SqlKeyValueStore(KeyValueStore):
    """Хранилище в таблице storage_entries через SQLAlchemy"""

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        self.engine = engine or create_storage_engine(url)
        self.SessionLocal = create_session_factory(self.engine)

    def get(self, key: str) -> Optional[str]:
        db = self.SessionLocal()
        try:
            entry = db.get(StorageEntry, key)
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self.SessionLocal()
        try:
            entry = db.get(StorageEntry, key)
            if entry:
                entry.value = value
            else:
                db.add(StorageEntry(key=key, value=value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Error writing storage key {key}: {e}")
            raise
        finally:
            db.close()

    def remove(self, key: str) -> None:
        db = self.SessionLocal()
        try:
            db.query(StorageEntry).filter(StorageEntry.key == key).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Error removing storage key {key}: {e}")
            raise
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()
