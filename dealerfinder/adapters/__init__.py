"""
Site adapters, one per manufacturer locator.
Adapters are selected by name from the source configuration.
"""

from typing import Dict, List, Type

from .base import ExtractionContext, InteractionStep, PaginationMode, SiteAdapter
from .kia import KiaAdapter
from .opel import OpelAdapter
from .seat import SeatAdapter

ADAPTERS: Dict[str, Type[SiteAdapter]] = {
    'kia': KiaAdapter,
    'opel': OpelAdapter,
    'seat': SeatAdapter,
}


def create_adapter(name: str, **kwargs) -> SiteAdapter:
    """Instantiate the adapter registered under name."""
    try:
        adapter_cls = ADAPTERS[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown adapter '{name}'. Available: {', '.join(available_adapters())}"
        ) from None
    return adapter_cls(**kwargs)


def available_adapters() -> List[str]:
    return sorted(ADAPTERS)


__all__ = [
    'ADAPTERS',
    'ExtractionContext',
    'InteractionStep',
    'KiaAdapter',
    'OpelAdapter',
    'PaginationMode',
    'SeatAdapter',
    'SiteAdapter',
    'available_adapters',
    'create_adapter',
]
