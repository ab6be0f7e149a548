from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

Base = declarative_base()


def create_storage_engine(url: Optional[str] = None) -> Engine:
    """Создает движок для локального хранилища"""
    url = url or settings.storage_url

    # Для файловой SQLite создаём каталог заранее
    if url.startswith("sqlite:///") and not url.endswith(":memory:"):
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(url, echo=settings.debug, future=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Фабрика сессий, таблицы создаются при первом вызове"""
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def test_connection(engine: Engine) -> bool:
    """Тест подключения к хранилищу"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        print(f"Storage connection failed: {e}")
        return False
