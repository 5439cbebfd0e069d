"""
Coordinate lookup for dealer postal codes.
Uses the OpenStreetMap Nominatim search API.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple
import httpx

from ..errors import GeocodeUnavailable
from ..models import Coordinates, GeocoderConfig
from ..utils import clean, get_logger

CacheKey = Tuple[str, Optional[str]]


class NominatimClient:
    """
    Client for the Nominatim search endpoint.
    One request per lookup; no retries at this level.
    """

    def __init__(self, config: GeocoderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.api_url = config.base_url.rstrip('/')
        self.logger = get_logger()
        self._transport = transport

    async def lookup(self, postal_code: str, city: Optional[str] = None) -> Optional[Coordinates]:
        """
        Look up coordinates by postal code (and optionally city).

        Returns:
            Coordinates of the first match, or None when nothing matches

        Raises:
            GeocodeUnavailable: on transport errors or an unreadable response
        """
        params = {
            'postalcode': postal_code,
            'country': self.config.country,
            'format': 'json',
            'limit': 1,
        }
        if city:
            params['city'] = city

        endpoint = f"{self.api_url}/search"
        headers = {'User-Agent': self.config.user_agent}

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_sec, transport=self._transport) as client:
                response = await client.get(endpoint, params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise GeocodeUnavailable(f"Geocoder timeout for {postal_code}") from e
        except httpx.HTTPError as e:
            raise GeocodeUnavailable(f"Geocoder HTTP error for {postal_code}: {e}") from e
        except ValueError as e:
            raise GeocodeUnavailable(f"Geocoder returned invalid JSON for {postal_code}") from e

        return self._parse_response(data, postal_code)

    def _parse_response(self, data, postal_code: str) -> Optional[Coordinates]:
        """
        Response is a JSON array of places:
        [{"lat": "49.2354", "lon": "6.9969", "display_name": "..."}]
        """
        if not isinstance(data, list):
            raise GeocodeUnavailable(f"Unexpected geocoder payload for {postal_code}")
        if not data:
            return None

        try:
            return Coordinates(latitude=float(data[0]['lat']), longitude=float(data[0]['lon']))
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeUnavailable(f"Unreadable geocoder result for {postal_code}: {e}") from e


class CoordinateResolver:
    """
    Cached, rate-limited coordinate lookup shared by all runs and sources.

    Upstream calls are serialized through one lock and spaced at least
    min_interval_sec apart, however many callers are waiting.
    """

    def __init__(
        self,
        client: NominatimClient,
        min_interval_sec: float = 1.0,
        negative_ttl_sec: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.min_interval_sec = min_interval_sec
        self.negative_ttl_sec = negative_ttl_sec
        self.logger = get_logger()

        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: Optional[float] = None

        self._cache: Dict[CacheKey, Coordinates] = {}
        self._misses: Dict[CacheKey, float] = {}

        self.upstream_calls = 0

    @classmethod
    def from_config(cls, config: GeocoderConfig) -> "CoordinateResolver":
        return cls(
            NominatimClient(config),
            min_interval_sec=config.min_interval_sec,
            negative_ttl_sec=config.negative_ttl_sec,
        )

    async def resolve(self, postal_code: str, city: Optional[str] = None) -> Optional[Coordinates]:
        """
        Coordinates for a postal code, or None when not found or unavailable.
        """
        key = self._cache_key(postal_code, city)
        if not key[0]:
            return None

        hit, coords = self._cached(key)
        if hit:
            return coords

        async with self._lock:
            # Another caller may have filled the entry while we waited
            hit, coords = self._cached(key)
            if hit:
                return coords

            await self._throttle()
            self.upstream_calls += 1
            try:
                coords = await self.client.lookup(key[0], city.strip() if city else None)
            except GeocodeUnavailable as e:
                self.logger.warning(f"Geocoding unavailable: {e}")
                return None
            finally:
                self._last_call = self._clock()

            if coords is None:
                self.logger.debug(f"No coordinates for {key[0]} {key[1] or ''}".rstrip())
                self._misses[key] = self._clock()
            else:
                self._cache[key] = coords
        return coords

    def _cached(self, key: CacheKey) -> Tuple[bool, Optional[Coordinates]]:
        if key in self._cache:
            return True, self._cache[key]
        missed_at = self._misses.get(key)
        if missed_at is not None:
            if self._clock() - missed_at < self.negative_ttl_sec:
                return True, None
            del self._misses[key]
        return False, None

    async def _throttle(self):
        if self._last_call is None:
            return
        wait = self.min_interval_sec - (self._clock() - self._last_call)
        if wait > 0:
            await self._sleep(wait)

    @staticmethod
    def _cache_key(postal_code: Optional[str], city: Optional[str]) -> CacheKey:
        city = clean(city).lower()
        return clean(postal_code), city or None
