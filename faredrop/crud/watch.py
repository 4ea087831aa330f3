import logging
import math
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from faredrop.core.config import settings
from faredrop.core.constants import (CURRENCY_CODE_LENGTH, DEFAULT_CURRENCY,
                                     HISTORY_DEFAULT_LIMIT,
                                     LOCATION_CODE_LENGTH,
                                     REQUIRED_CREATE_FIELDS, SNAPSHOT_SOURCE,
                                     UPDATABLE_FIELDS)
from faredrop.core.db import utcnow
from faredrop.core.exceptions import NotFoundError, ValidationError
from faredrop.models.watch import PriceSnapshot, Watch
from faredrop.schemas.fare import PriceResult

logger = logging.getLogger('faredrop')


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _is_code(code: str, length: int) -> bool:
    return len(code) == length and code.isascii() and code.isalpha()


def _normalize_location(value: str, field: str) -> str:
    code = str(value).strip().upper()
    if not _is_code(code, LOCATION_CODE_LENGTH):
        raise ValidationError(
            f'{field} must be a {LOCATION_CODE_LENGTH}-letter location code'
        )
    return code


def _normalize_currency(value: Optional[str]) -> str:
    code = str(value or DEFAULT_CURRENCY).strip().upper()
    if not _is_code(code, CURRENCY_CODE_LENGTH):
        raise ValidationError(
            f'currency must be a {CURRENCY_CODE_LENGTH}-letter ISO code'
        )
    return code


class CRUDWatch:
    async def get_multi(
        self, session: AsyncSession, user_id: str
    ) -> list[Watch]:
        stmt = (
            select(Watch)
            .where(Watch.user_id == user_id)
            .order_by(Watch.updated_at.desc())
        )
        return list((await session.execute(stmt)).scalars().all())

    async def get(
        self, session: AsyncSession, user_id: str, watch_id: str
    ) -> Watch:
        stmt = (
            select(Watch)
            .where(Watch.user_id == user_id, Watch.watch_id == watch_id)
            .execution_options(populate_existing=True)
        )
        watch = (await session.execute(stmt)).scalar_one_or_none()
        if watch is None:
            raise NotFoundError()
        return watch

    async def create(
        self, session: AsyncSession, user_id: str, fields: dict[str, Any]
    ) -> Watch:
        missing = [
            wire_name
            for name, wire_name in REQUIRED_CREATE_FIELDS.items()
            if fields.get(name) in (None, '')
        ]
        if missing:
            raise ValidationError('Missing required fields', required=missing)
        if not _is_positive_number(fields['price_threshold']):
            raise ValidationError('priceThreshold must be a positive number')

        now = utcnow()
        watch = Watch(
            user_id=user_id,
            watch_id=str(uuid.uuid4()),
            origin=_normalize_location(fields['origin'], 'origin'),
            destination=_normalize_location(
                fields['destination'], 'destination'
            ),
            departure_date=fields['departure_date'],
            return_date=fields.get('return_date'),
            price_threshold=float(fields['price_threshold']),
            currency=_normalize_currency(fields.get('currency')),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        session.add(watch)
        await session.commit()
        await session.refresh(watch)
        logger.info(f'Watch {watch.watch_id} created for user {user_id}')
        return watch

    async def update(
        self,
        session: AsyncSession,
        user_id: str,
        watch_id: str,
        fields: dict[str, Any],
    ) -> Watch:
        values = {
            key: value for key, value in fields.items()
            if key in UPDATABLE_FIELDS
        }
        if not values:
            raise ValidationError('No fields to update')
        if 'price_threshold' in values and not _is_positive_number(
            values['price_threshold']
        ):
            raise ValidationError('priceThreshold must be a positive number')
        if 'departure_date' in values and values['departure_date'] is None:
            raise ValidationError('departureDate cannot be empty')
        if 'is_active' in values and values['is_active'] is None:
            raise ValidationError('isActive must be a boolean')

        values['updated_at'] = utcnow()
        result = await session.execute(
            update(Watch)
            .where(Watch.user_id == user_id, Watch.watch_id == watch_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError()
        await session.commit()
        logger.info(f'Watch {watch_id} updated: {sorted(values)}')
        return await self.get(session, user_id, watch_id)

    async def delete(
        self, session: AsyncSession, user_id: str, watch_id: str
    ) -> None:
        result = await session.execute(
            delete(Watch)
            .where(Watch.user_id == user_id, Watch.watch_id == watch_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError()
        await session.commit()
        logger.info(f'Watch {watch_id} deleted by user {user_id}')

    async def list_active(
        self, session: AsyncSession, as_of: date
    ) -> list[Watch]:
        """All active, not yet departed watches across every user."""
        stmt = (
            select(Watch)
            .where(
                Watch.is_active.is_(True),
                Watch.departure_date >= as_of,
            )
            .order_by(Watch.updated_at)
        )
        return list((await session.execute(stmt)).scalars().all())

    async def apply_poll_result(
        self,
        session: AsyncSession,
        user_id: str,
        watch_id: str,
        price: float,
        checked_at: Optional[datetime] = None,
    ) -> bool:
        """
        Store the latest quote on the watch.

        Returns False when the watch no longer exists.
        """
        checked_at = checked_at or utcnow()
        result = await session.execute(
            update(Watch)
            .where(Watch.user_id == user_id, Watch.watch_id == watch_id)
            .values(
                last_price=price,
                last_checked_at=checked_at,
                updated_at=checked_at,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return bool(result.rowcount)

    async def mark_alert_sent(
        self,
        session: AsyncSession,
        user_id: str,
        watch_id: str,
        when: datetime,
    ) -> None:
        await session.execute(
            update(Watch)
            .where(Watch.user_id == user_id, Watch.watch_id == watch_id)
            .values(last_alert_sent=when)
            .execution_options(synchronize_session=False)
        )
        await session.commit()


class CRUDPriceSnapshot:
    async def record(
        self,
        session: AsyncSession,
        watch_id: str,
        result: PriceResult,
        timestamp: Optional[datetime] = None,
    ) -> PriceSnapshot:
        timestamp = timestamp or utcnow()
        snapshot = PriceSnapshot(
            watch_id=watch_id,
            timestamp=timestamp,
            price=result.price,
            currency=result.currency,
            source=SNAPSHOT_SOURCE,
            airline=result.airline,
            flight_number=result.flight_number,
            duration=result.duration,
            stops=result.stops,
            expires_at=timestamp + timedelta(
                days=settings.snapshot_retention_days
            ),
        )
        session.add(snapshot)
        await session.commit()
        return snapshot

    async def history(
        self,
        session: AsyncSession,
        watch_id: str,
        limit: int = HISTORY_DEFAULT_LIMIT,
        now: Optional[datetime] = None,
    ) -> list[PriceSnapshot]:
        stmt = (
            select(PriceSnapshot)
            .where(
                PriceSnapshot.watch_id == watch_id,
                PriceSnapshot.expires_at > (now or utcnow()),
            )
            .order_by(PriceSnapshot.timestamp.desc())
            .limit(limit)
        )
        return list((await session.execute(stmt)).scalars().all())

    async def purge_expired(
        self, session: AsyncSession, now: Optional[datetime] = None
    ) -> int:
        result = await session.execute(
            delete(PriceSnapshot)
            .where(PriceSnapshot.expires_at <= (now or utcnow()))
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return result.rowcount or 0


crud_watch = CRUDWatch()
crud_price_snapshot = CRUDPriceSnapshot()
