from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker,
                                    create_async_engine)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from faredrop.core.config import settings

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime that always comes back as UTC,
    including on backends (SQLite) that drop tzinfo on storage.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_engine(test=False):
    """
    Lazily initializes and returns the database engine.
    """

    database_url = settings.get_database_url(test)
    engine_kwargs = {'echo': settings.database_echo, 'future': True}
    if not database_url.startswith('sqlite'):
        engine_kwargs.update(pool_size=5, max_overflow=10)
    return create_async_engine(database_url, **engine_kwargs)


def get_async_session(test=False):
    engine = get_engine(test)
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


async def get_session():
    """
    Dependency-injected session generator for FastAPI routes.
    """
    async_session = get_async_session()
    async with async_session() as session:
        yield session
