"""
Price polling engine.

One run scans every active watch, fetches the current fare, records a
snapshot, refreshes the watch's cached price and sends a price-drop
alert when the fare is at or below the threshold and the previous alert
is older than the cooldown window. Watches are processed one by one with
a fixed pause between them to stay under the provider's rate limits.
"""
import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faredrop.core.config import settings
from faredrop.core.db import utcnow
from faredrop.crud.watch import crud_price_snapshot, crud_watch
from faredrop.models.watch import Watch
from faredrop.schemas.fare import PriceResult

logger = logging.getLogger('faredrop')


class QuoteClient(Protocol):
    async def get_fare_price(self, watch: Watch) -> Optional[PriceResult]:
        ...


class Notifier(Protocol):
    async def send_price_drop_alert(
        self, watch: Watch, current_price: float
    ) -> bool:
        ...


@dataclass
class PollSummary:
    watches_processed: int = 0
    successful: int = 0
    errors: int = 0
    alerts_sent: int = 0
    skipped: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def hours_since(moment: Optional[datetime], now: datetime) -> float:
    if moment is None:
        return float('inf')
    return (now - moment) / timedelta(hours=1)


class PricePoller:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        quote_client: QuoteClient,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
        delay_seconds: Optional[float] = None,
        cooldown_hours: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.quote_client = quote_client
        self.notifier = notifier
        self.clock = clock
        self.delay_seconds = (
            settings.poll_delay_seconds
            if delay_seconds is None else delay_seconds
        )
        self.cooldown_hours = (
            settings.alert_cooldown_hours
            if cooldown_hours is None else cooldown_hours
        )
        self.sleep = sleep

    async def run(self) -> PollSummary:
        logger.info(f'Price poller triggered at {self.clock().isoformat()}')
        summary = PollSummary()
        try:
            async with self.session_factory() as session:
                watches = await crud_watch.list_active(
                    session, self.clock().date()
                )
        except Exception:
            logger.exception('Fatal error: cannot list active watches')
            raise
        logger.info(f'Found {len(watches)} active watches to poll')

        for index, watch in enumerate(watches):
            if index:
                await self.sleep(self.delay_seconds)
            summary.watches_processed += 1
            try:
                outcome = await self.process_watch(watch)
            except Exception:
                logger.exception(f'Failed to process watch {watch.watch_id}')
                summary.errors += 1
                continue
            summary.successful += 1
            if outcome == 'alerted':
                summary.alerts_sent += 1
            elif outcome in ('no_quote', 'gone'):
                summary.skipped += 1

        logger.info(
            f'Polling complete: {summary.successful} successful, '
            f'{summary.errors} errors, {summary.alerts_sent} alerts sent'
        )
        return summary

    async def process_watch(self, watch: Watch) -> str:
        """
        Poll a single watch.

        Returns one of ``no_quote``, ``gone``, ``above_threshold``,
        ``cooldown``, ``alert_failed`` or ``alerted``.
        """
        logger.debug(
            f'Processing {watch.watch_id}: '
            f'{watch.origin} -> {watch.destination}'
        )
        result = await self.quote_client.get_fare_price(watch)
        if result is None:
            logger.info(f'No price found for watch {watch.watch_id}')
            return 'no_quote'
        logger.debug(
            f'Price found for {watch.watch_id}: '
            f'{result.currency} {result.price}'
        )

        now = self.clock()
        async with self.session_factory() as session:
            exists = await crud_watch.apply_poll_result(
                session, watch.user_id, watch.watch_id, result.price,
                checked_at=now,
            )
            if not exists:
                logger.info(f'Watch {watch.watch_id} was deleted mid-run')
                return 'gone'
            await crud_price_snapshot.record(
                session, watch.watch_id, result, timestamp=now
            )

            if result.price > watch.price_threshold:
                return 'above_threshold'

            elapsed = hours_since(watch.last_alert_sent, now)
            if elapsed <= self.cooldown_hours:
                logger.debug(
                    f'Alert cooldown active for {watch.watch_id} '
                    f'({elapsed:.1f}h since last alert)'
                )
                return 'cooldown'

            logger.info(
                f'ALERT: {watch.watch_id} price {result.price} <= '
                f'threshold {watch.price_threshold}'
            )
            delivered = await self.notifier.send_price_drop_alert(
                watch, result.price
            )
            if not delivered:
                return 'alert_failed'
            await crud_watch.mark_alert_sent(
                session, watch.user_id, watch.watch_id, now
            )
            return 'alerted'
