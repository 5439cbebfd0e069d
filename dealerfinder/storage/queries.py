"""
Read-side queries over the dealer collection.
Backs the external dealer search (brand, city, postal-code radius).
"""

import asyncio
import re
from typing import List, Optional

from pymongo.collection import Collection

from ..errors import GeocodeUnavailable
from ..models import Coordinates, DealerRecord
from ..services.geocoder import CoordinateResolver
from ..utils import clean, get_logger

EARTH_RADIUS_KM = 6378.1
DEFAULT_RADIUS_KM = 5.0


def build_dealer_query(
    brand: Optional[str] = None,
    city: Optional[str] = None,
    coords: Optional[Coordinates] = None,
    radius_km: Optional[float] = None,
    active_only: bool = False,
) -> dict:
    """
    Build the MongoDB filter for a dealer search.

    Brand and city are case-insensitive exact matches. Coordinates restrict
    to a sphere of radius_km around them and take precedence over city.
    """
    query = {}
    if clean(brand):
        query['source'] = _exact(brand)
    if coords is not None:
        radius = radius_km if radius_km and radius_km > 0 else DEFAULT_RADIUS_KM
        query['location'] = {
            '$geoWithin': {
                '$centerSphere': [[coords.longitude, coords.latitude], radius / EARTH_RADIUS_KM]
            }
        }
    elif clean(city):
        query['city'] = _exact(city)
    if active_only:
        query['inactive'] = {'$ne': True}
    return query


def _exact(value: str) -> dict:
    return {'$regex': f"^{re.escape(clean(value))}$", '$options': 'i'}


class DealerQueryService:
    """Dealer search over the shared collection."""

    def __init__(self, collection: Collection, resolver: CoordinateResolver):
        self.collection = collection
        self.resolver = resolver
        self.logger = get_logger()

    async def find(
        self,
        brand: Optional[str] = None,
        city: Optional[str] = None,
        postal_code: Optional[str] = None,
        radius_km: Optional[float] = None,
        lng: Optional[float] = None,
        lat: Optional[float] = None,
        active_only: bool = False,
    ) -> List[DealerRecord]:
        """
        Search dealers.

        A postal code is resolved to coordinates first; explicit lng/lat
        are used when no postal code is given. City is ignored once there
        are coordinates.

        Raises:
            GeocodeUnavailable: the postal code has no coordinates
        """
        coords = None
        if clean(postal_code):
            coords = await self.resolver.resolve(clean(postal_code))
            if coords is None:
                raise GeocodeUnavailable(f"Could not get coordinates for postal code {postal_code}")
        elif lng is not None and lat is not None:
            coords = Coordinates(latitude=lat, longitude=lng)

        query = build_dealer_query(brand, city, coords, radius_km, active_only)
        self.logger.debug(f"Dealer query: {query}")

        documents = await asyncio.to_thread(lambda: list(self.collection.find(query)))
        return [DealerRecord.from_document(doc) for doc in documents]
