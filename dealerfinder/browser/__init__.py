"""
Browser automation module.
Provides Playwright-based browser management and page sessions.
"""

from .manager import BrowserManager
from .session import BrowserSession

__all__ = [
    'BrowserManager',
    'BrowserSession',
]
