"""
Coordinate enrichment of raw dealer tuples.
"""

import asyncio
from typing import List

from ..models import RawDealer
from ..utils import clean, get_logger, split_postal_city
from .geocoder import CoordinateResolver


async def enrich_with_coordinates(
    dealers: List[RawDealer],
    resolver: CoordinateResolver,
    with_city: bool = False,
) -> int:
    """
    Fill latitude/longitude on tuples that carry a postal code but no
    coordinates. Lookups run concurrently; the resolver serializes the
    upstream calls. Tuples that cannot be resolved keep no coordinates.

    Returns:
        Number of tuples that received coordinates
    """
    logger = get_logger()

    async def enrich(dealer: RawDealer) -> bool:
        if dealer.latitude is not None and dealer.longitude is not None:
            return False

        postal_code, city = clean(dealer.postal_code), clean(dealer.city)
        if dealer.postal_city and (not postal_code or not city):
            split_postal, split_city = split_postal_city(dealer.postal_city)
            postal_code = postal_code or split_postal
            city = city or split_city
        if not postal_code:
            return False

        coords = await resolver.resolve(postal_code, city if with_city else None)
        if coords is None:
            return False

        dealer.latitude = coords.latitude
        dealer.longitude = coords.longitude
        return True

    results = await asyncio.gather(*(enrich(dealer) for dealer in dealers))
    enriched = sum(1 for result in results if result)

    logger.debug(f"Geocoded {enriched} of {len(dealers)} dealer(s)")
    return enriched
