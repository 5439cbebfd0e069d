"""
Service modules for data processing and external APIs.
"""

from .enrichment import enrich_with_coordinates
from .geocoder import CoordinateResolver, NominatimClient
from .reconciler import Reconciler, normalize_raw

__all__ = [
    'CoordinateResolver',
    'NominatimClient',
    'Reconciler',
    'enrich_with_coordinates',
    'normalize_raw',
]
