"""
Utility modules for the pipeline.
"""

from .logger import DealerFinderLogger, get_logger, init_logger
from .text import (
    clean,
    clean_optional,
    clean_services,
    collapse_whitespace,
    split_postal_city,
    strip_phone_label,
)

__all__ = [
    'DealerFinderLogger',
    'get_logger',
    'init_logger',
    'clean',
    'clean_optional',
    'clean_services',
    'collapse_whitespace',
    'split_postal_city',
    'strip_phone_label',
]
