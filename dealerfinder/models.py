"""
Data models for the dealer ingestion pipeline.
All models use Pydantic for validation and serialization.
"""

from typing import Optional, List, Tuple, NamedTuple
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


KEY_FIELDS = ('nameKey', 'streetKey', 'postalCodeKey')
DOCUMENT_ONLY_FIELDS = ('_id', 'location') + KEY_FIELDS


class DealerKey(NamedTuple):
    """Normalized identity of a dealer within one source."""
    name: str
    street: str
    postal_code: str

    def as_document(self) -> dict:
        return {'nameKey': self.name, 'streetKey': self.street, 'postalCodeKey': self.postal_code}

    @classmethod
    def from_document(cls, document: dict) -> "DealerKey":
        return cls(document['nameKey'], document['streetKey'], document['postalCodeKey'])


class Coordinates(BaseModel):
    """Latitude/longitude pair returned by the geocoder."""
    latitude: float
    longitude: float


class GeoPoint(BaseModel):
    """GeoJSON point, coordinates ordered [longitude, latitude]."""
    type: str = "Point"
    coordinates: List[float]


class RawDealer(BaseModel):
    """
    Unvalidated dealer tuple as yielded by a site adapter.

    Some locators render postal code and city as one string ("66111 Saarbrücken");
    adapters put that into postal_city and leave the split to the reconciler.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    street: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    city: Optional[str] = None
    postal_city: Optional[str] = Field(default=None, alias="postalCodeCity")
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    services: List[str] = Field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def has_content(self) -> bool:
        """True if at least one identifying/contact field carries text."""
        fields = (
            self.name, self.street, self.postal_code, self.city,
            self.postal_city, self.phone, self.website,
        )
        return any(value and value.strip() for value in fields)

    def listing_key(self) -> Tuple[str, str]:
        """(name, street) key used to drop repeated entries within one listing."""
        return (
            (self.name or '').strip().lower(),
            (self.street or '').strip().lower(),
        )


class DealerRecord(BaseModel):
    """
    Canonical dealer as persisted for one source.

    Field aliases are the stored document names.
    """
    model_config = ConfigDict(populate_by_name=True)

    source: str
    name: str
    street: str = ""
    postal_code: str = Field(alias="postalCode")
    city: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    services: Optional[List[str]] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    inactive: bool = False

    @computed_field
    @property
    def location(self) -> Optional[GeoPoint]:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(coordinates=[self.longitude, self.latitude])

    @property
    def key(self) -> DealerKey:
        return DealerKey(
            name=self.name.strip().lower(),
            street=self.street.strip().lower(),
            postal_code=self.postal_code.strip(),
        )

    def to_document(self) -> dict:
        """Stored form: aliased fields, absent optionals omitted, plus the identity key."""
        document = self.model_dump(by_alias=True, exclude_none=True)
        document.update(self.key.as_document())
        return document

    @classmethod
    def from_document(cls, document: dict) -> "DealerRecord":
        data = {k: v for k, v in document.items() if k not in DOCUMENT_ONLY_FIELDS}
        return cls.model_validate(data)


class ReconcileResult(BaseModel):
    """Diff between one run's observations and the stored active set."""
    to_upsert: List[DealerRecord] = Field(default_factory=list)
    to_retire: List[DealerKey] = Field(default_factory=list)
    rejected: int = 0
    duplicates: int = 0


class ApplyResult(BaseModel):
    """Counts reported by the persistence gateway for one batch."""
    upserted: int = 0
    retired: int = 0
    failed: int = 0
    conflicts: int = 0
    errors: List[str] = Field(default_factory=list)


class ScrapeRunState(BaseModel):
    """Last completed run per source."""
    model_config = ConfigDict(populate_by_name=True)

    source: str
    last_updated: datetime = Field(alias="lastUpdated")


class RunStatus(str, Enum):
    """Outcome of one scheduler trigger."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunReport(BaseModel):
    """Summary of one pipeline run for a source."""
    source: str
    status: RunStatus = RunStatus.COMPLETED
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    terms_processed: List[str] = Field(default_factory=list)
    terms_failed: List[str] = Field(default_factory=list)

    extracted: int = 0
    rejected: int = 0
    duplicates: int = 0
    upserted: int = 0
    retired: int = 0
    failed_writes: int = 0

    error: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        if not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


# ============================================================
# CONFIGURATION
# ============================================================

class BrowserConfig(BaseModel):
    """Headless browser settings."""
    headless: bool = True
    page_timeout_ms: int = 30000
    user_agent: Optional[str] = None
    locale: str = "de-DE"
    timezone: str = "Europe/Berlin"


class GeocoderConfig(BaseModel):
    """Upstream coordinate lookup settings."""
    base_url: str = "https://nominatim.openstreetmap.org"
    country: str = "Germany"
    user_agent: str = "DealerFinder/1.0"
    min_interval_sec: float = 1.0
    negative_ttl_sec: float = 3600.0
    timeout_sec: float = 15.0


class MongoConfig(BaseModel):
    """Dealer store settings."""
    uri: str = "mongodb://localhost:27017"
    database: str = "carScraper"
    dealers_collection: str = "dealers"
    runs_collection: str = "scrapeInfo"
    server_selection_timeout_ms: int = 5000


class SourceConfig(BaseModel):
    """One manufacturer locator and how to run it."""
    name: str
    adapter: Optional[str] = None
    search_terms: List[str] = Field(default_factory=list)
    interval_minutes: int = 60
    retry_attempts: int = 2
    retry_delay_sec: float = 3.0
    geocode_with_city: bool = False
    enabled: bool = True

    @field_validator('name')
    @classmethod
    def _lower_name(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def adapter_name(self) -> str:
        return (self.adapter or self.name).strip().lower()


class PipelineConfig(BaseModel):
    """Configuration for the whole ingestion pipeline."""
    sources: List[SourceConfig] = Field(default_factory=list)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    geocoder: GeocoderConfig = Field(default_factory=GeocoderConfig)
    mongodb: MongoConfig = Field(default_factory=MongoConfig)

    scheduler_timezone: str = "Europe/Berlin"

    # Debug
    debug_mode: bool = False
    debug_log_file: str = "./debug/debug.log"

    def get_source(self, name: str) -> Optional[SourceConfig]:
        name = name.strip().lower()
        for source in self.sources:
            if source.name == name:
                return source
        return None
