import logging
from datetime import date, datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker,
                                    create_async_engine)

from faredrop.core.base import Base
from faredrop.core.config import settings
from faredrop.core.db import get_session
from faredrop.crud.watch import crud_watch
from faredrop.main import app

logger = logging.getLogger('faredrop')

USER_ID = 'user-alice'
OTHER_USER_ID = 'user-bob'


@pytest.fixture(scope='function')
async def test_engine():
    engine = create_async_engine(
        settings.get_database_url(test=True),
        future=True
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope='function')
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture(scope='function')
async def test_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope='function')
async def async_client(test_session: AsyncSession):
    transport = ASGITransport(app=app)
    async with AsyncClient(
            transport=transport,
            base_url='http://test'
    ) as client:
        yield client


def create_access_token(
        subject: str,
        expires_delta: timedelta | None = None,
        secret: str | None = None,
) -> str:
    """Issue a token the way the external identity provider would."""
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta else timedelta(hours=1)
    )
    claims: dict[str, Any] = {'sub': subject, 'exp': expire}
    if settings.jwt_audience:
        claims['aud'] = settings.jwt_audience
    return jwt.encode(
        claims,
        secret or settings.jwt_secret,
        algorithm=settings.jwt_algorithm
    )


@pytest.fixture
def make_token():
    return create_access_token


@pytest.fixture
def auth_headers() -> dict:
    return {'Authorization': f'Bearer {create_access_token(USER_ID)}'}


@pytest.fixture
def other_auth_headers() -> dict:
    return {
        'Authorization': f'Bearer {create_access_token(OTHER_USER_ID)}'
    }


@pytest.fixture
async def created_watch(test_session: AsyncSession):
    return await crud_watch.create(
        test_session,
        USER_ID,
        {
            'origin': 'jfk',
            'destination': 'lax',
            'departure_date': date(2099, 1, 1),
            'price_threshold': 500,
        },
    )


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture(scope='function', autouse=True)
async def override_dependencies(session_factory):
    """
    Fixture that automatically overrides dependencies for all tests.
    """

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        handler = RotatingFileHandler(
            'test_faredrop.log',
            maxBytes=200000,
            backupCount=10
        )
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.state.session_factory = session_factory
    logger.debug('Dependencies overridden for the test')

    yield

    app.dependency_overrides.clear()
    logger.debug('Dependencies overrides cleared after the test')
