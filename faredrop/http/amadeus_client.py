import logging
import time
from typing import Callable, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from faredrop.core.config import settings
from faredrop.core.constants import (AMADEUS_OFFERS_PATH, AMADEUS_TOKEN_PATH,
                                     TOKEN_REFRESH_MARGIN_SECONDS,
                                     TOKEN_TTL_FALLBACK_SECONDS)
from faredrop.core.exceptions import ConfigurationError, FareProviderError
from faredrop.models.watch import Watch
from faredrop.schemas.fare import PriceResult

logger = logging.getLogger('faredrop')


class AmadeusTokenProvider:
    """
    Client-credentials bearer token with an in-memory cache.

    One instance lives for the whole process and is shared by every
    polling run. The token is refreshed once less than
    ``refresh_margin`` seconds of validity remain.
    """

    def __init__(
        self,
        base_url: str,
        client_id: Optional[str],
        client_secret: Optional[str],
        clock: Callable[[], float] = time.time,
        refresh_margin: int = TOKEN_REFRESH_MARGIN_SECONDS,
    ):
        self.base_url = base_url.rstrip('/')
        self.client_id = client_id
        self.client_secret = client_secret
        self.clock = clock
        self.refresh_margin = refresh_margin
        self._access_token: Optional[str] = None
        self._expires_at: float = 0.0

    @classmethod
    def from_settings(cls) -> 'AmadeusTokenProvider':
        return cls(
            base_url=settings.amadeus_base_url,
            client_id=settings.amadeus_client_id,
            client_secret=settings.amadeus_client_secret,
        )

    def _is_fresh(self) -> bool:
        return (
            self._access_token is not None
            and self._expires_at > self.clock() + self.refresh_margin
        )

    async def get_token(self) -> str:
        if self._is_fresh():
            return self._access_token
        if not self.client_id or not self.client_secret:
            raise ConfigurationError('Amadeus credentials not configured')

        data = await self._request_token()
        token = data.get('access_token')
        if not token:
            raise FareProviderError('Amadeus token response has no token')
        expires_in = int(data.get('expires_in') or TOKEN_TTL_FALLBACK_SECONDS)
        self._access_token = token
        self._expires_at = self.clock() + expires_in
        logger.info('Authenticated with Amadeus API')
        return token

    async def _request_token(self) -> dict:
        url = f'{self.base_url}{AMADEUS_TOKEN_PATH}'
        form = {
            'grant_type': 'client_credentials',
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }
        async with ClientSession(timeout=ClientTimeout(total=10)) as session:
            async with session.post(url, data=form) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise FareProviderError(
                        f'Failed to get Amadeus token: {resp.status} {text}'
                    )
                return await resp.json()


class FareQuoteClient:
    """Looks up the cheapest current fare for a watch."""

    def __init__(
        self,
        token_provider: AmadeusTokenProvider,
        base_url: Optional[str] = None,
    ):
        self.token_provider = token_provider
        self.base_url = (base_url or token_provider.base_url).rstrip('/')
        self._session: ClientSession | None = None

    def _ensure_session(self):
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                timeout=ClientTimeout(total=20),
                headers={'Accept': 'application/json'},
            )

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    def build_params(watch: Watch) -> dict:
        params = {
            'originLocationCode': watch.origin,
            'destinationLocationCode': watch.destination,
            'departureDate': watch.departure_date.isoformat(),
            'adults': 1,
            'currencyCode': watch.currency,
            'max': 1,
        }
        if watch.return_date:
            params['returnDate'] = watch.return_date.isoformat()
        return params

    @staticmethod
    def parse_offer(payload: dict) -> Optional[PriceResult]:
        offers = (payload or {}).get('data') or []
        if not offers:
            return None
        offer = offers[0]
        try:
            itinerary = offer['itineraries'][0]
            segments = itinerary['segments']
            first_segment = segments[0]
            return PriceResult(
                price=float(offer['price']['total']),
                currency=offer['price']['currency'],
                airline=first_segment.get('carrierCode'),
                flight_number=first_segment.get('number'),
                duration=itinerary.get('duration'),
                stops=len(segments) - 1,
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f'Unexpected Amadeus offer shape: {e}')
            return None

    async def get_fare_price(self, watch: Watch) -> Optional[PriceResult]:
        """
        Cheapest offer for the watch's route and dates, or ``None`` when
        the provider has no offer or answers with a non-success status.

        Credential problems and transport errors propagate.
        """
        token = await self.token_provider.get_token()
        self._ensure_session()
        url = f'{self.base_url}{AMADEUS_OFFERS_PATH}'
        params = self.build_params(watch)
        logger.debug(f'GET {url} params={params}')
        async with self._session.get(
            url,
            params=params,
            headers={'Authorization': f'Bearer {token}'},
        ) as resp:
            if resp.status >= 400:
                text = await resp.text()
                logger.warning(f'GET {url} -> {resp.status}: {text}')
                return None
            try:
                payload = await resp.json()
            except (aiohttp.ContentTypeError, ValueError) as e:
                logger.warning(f'Invalid JSON from {url}: {e}')
                return None
        return self.parse_offer(payload)
