from sqlalchemy import Column, String, Text, DateTime, func
from ..database import Base


class StorageEntry(Base):
    __tablename__ = "storage_entries"

    key = Column(String(255), primary_key=True, index=True)
    value = Column(Text, nullable=False)  # JSON или простая строка
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
