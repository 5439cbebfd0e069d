"""
Dealer store access.
"""

from .gateway import PersistenceGateway
from .queries import DealerQueryService, build_dealer_query

__all__ = [
    'DealerQueryService',
    'PersistenceGateway',
    'build_dealer_query',
]
