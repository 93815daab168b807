from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.database.engine import async_session, engine, sync_engine
from src.database.session import get_db

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "async_session",
    "engine",
    "sync_engine",
    "get_db",
]
