"""
Shared pytest fixtures for dealerfinder tests
"""
import sys
from pathlib import Path

import mongomock
import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dealerfinder.models import RawDealer  # noqa: E402
from dealerfinder.storage import PersistenceGateway  # noqa: E402


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested delays and returns at once."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep():
    return SleepRecorder()


@pytest.fixture
def mongo_db():
    """In-memory MongoDB database."""
    client = mongomock.MongoClient()
    yield client["carScraper"]
    client.close()


@pytest.fixture
def gateway(mongo_db):
    return PersistenceGateway(mongo_db)


@pytest.fixture
def sample_raw_dealer():
    """Dealer as rendered by a locator with a combined postal code/city line"""
    return RawDealer(
        name="Musterhändler",
        street="Hauptstr. 1",
        postal_city="66111 Saarbrücken",
    )


@pytest.fixture
def sample_batch():
    """Two distinct dealers plus a case variant of the first"""
    return [
        RawDealer(name="Autohaus Nord", street="Nordring 5", postal_code="10115", city="Berlin",
                  phone="030 123456"),
        RawDealer(name="Autohaus Süd", street="Südallee 9", postal_city="80331 München"),
        RawDealer(name="  AUTOHAUS NORD ", street="nordring 5", postal_code="10115", city="Berlin",
                  phone="030 999999"),
    ]
