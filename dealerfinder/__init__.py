"""
Dealer Finder
Scheduled scraping of manufacturer dealer locators into a geocoded dealer directory.
"""

__version__ = "1.0.0"
