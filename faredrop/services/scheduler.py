# scheduler.py
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from faredrop.core.config import settings
from faredrop.core.constants import SNAPSHOT_PURGE_INTERVAL_MINUTES
from faredrop.core.db import get_async_session
from faredrop.crud.watch import crud_price_snapshot
from faredrop.http.amadeus_client import (AmadeusTokenProvider,
                                          FareQuoteClient)
from faredrop.services.notifier import EmailNotifier
from faredrop.services.poller import PollSummary, PricePoller

logger = logging.getLogger('faredrop')


def start_scheduler(app: FastAPI) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.configure(timezone='UTC')

    # The credential cache lives as long as the process
    app.state.token_provider = AmadeusTokenProvider.from_settings()

    scheduler.add_job(
        func=poll_prices_task,
        trigger='interval',
        args=[app],
        id='poll_prices',
        name='Poll fares for active watches',
        hours=settings.poll_interval_hours,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        func=purge_expired_snapshots_task,
        trigger='interval',
        args=[app],
        id='purge_expired_snapshots',
        name='Delete expired price snapshots',
        minutes=SNAPSHOT_PURGE_INTERVAL_MINUTES,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info('Scheduler started.')
    return scheduler


async def poll_prices_task(app: FastAPI) -> PollSummary:
    logger.info('Starting poll_prices_task')
    token_provider = getattr(app.state, 'token_provider', None)
    if token_provider is None:
        token_provider = AmadeusTokenProvider.from_settings()
        app.state.token_provider = token_provider
    session_factory = getattr(
        app.state, 'session_factory', None
    ) or get_async_session()
    async with FareQuoteClient(token_provider) as quote_client:
        poller = PricePoller(
            session_factory=session_factory,
            quote_client=quote_client,
            notifier=EmailNotifier.from_settings(),
        )
        summary = await poller.run()
    logger.info(f'Completed poll_prices_task: {summary.as_dict()}')
    return summary


async def purge_expired_snapshots_task(app: FastAPI) -> int:
    session_factory = getattr(
        app.state, 'session_factory', None
    ) or get_async_session()
    async with session_factory() as session:
        try:
            removed = await crud_price_snapshot.purge_expired(session)
        except Exception as e:
            logger.error(f'Error in purge_expired_snapshots_task: {e}')
            return 0
    if removed:
        logger.info(f'Purged {removed} expired price snapshots')
    return removed
