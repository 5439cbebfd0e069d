"""
MongoDB persistence for dealer records and per-source run state.

Dealers of all sources share one collection, discriminated by `source`.
Records are never deleted; retirement flips `inactive` to true.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Set

from pymongo import ASCENDING, GEOSPHERE, MongoClient, UpdateOne
from pymongo.database import Database
from pymongo.errors import BulkWriteError, ConnectionFailure, PyMongoError

from ..errors import PersistenceConflict, StoreUnavailable
from ..models import (
    KEY_FIELDS,
    ApplyResult,
    DealerKey,
    DealerRecord,
    MongoConfig,
    ScrapeRunState,
)
from ..utils import get_logger

DUPLICATE_KEY_CODE = 11000

# Optional fields removed from the stored document when a run no longer observes them
OPTIONAL_FIELDS = ('phone', 'email', 'website', 'services', 'latitude', 'longitude', 'location')

IDENTITY_INDEX = 'source_identity_unique'
LOCATION_INDEX = 'location_2dsphere'


class PersistenceGateway:
    """
    Applies reconciled diffs to the dealer collection.

    Re-applying identical sets leaves the store unchanged and reports
    nothing upserted or retired.
    """

    def __init__(self, database: Database, dealers_collection: str = "dealers",
                 runs_collection: str = "scrapeInfo"):
        self.database = database
        self.dealers = database[dealers_collection]
        self.runs = database[runs_collection]
        self.logger = get_logger()
        self._indexes_ready = False

    @classmethod
    def from_config(cls, config: MongoConfig) -> "PersistenceGateway":
        client = MongoClient(config.uri, serverSelectionTimeoutMS=config.server_selection_timeout_ms)
        return cls(client[config.database], config.dealers_collection, config.runs_collection)

    def ensure_indexes(self):
        """Create the unique identity index and the location index before the first write."""
        if self._indexes_ready:
            return
        try:
            self.dealers.create_index(
                [('source', ASCENDING)] + [(field, ASCENDING) for field in KEY_FIELDS],
                unique=True,
                name=IDENTITY_INDEX,
            )
            self.dealers.create_index([('location', GEOSPHERE)], name=LOCATION_INDEX)
            self.runs.create_index([('source', ASCENDING)], unique=True)
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Cannot create indexes: {e}") from e
        self._indexes_ready = True

    def active_keys(self, source: str) -> Set[DealerKey]:
        """Identity keys of every active record of a source."""
        projection = {field: 1 for field in KEY_FIELDS}
        projection['_id'] = 0
        try:
            cursor = self.dealers.find({'source': source, 'inactive': {'$ne': True}}, projection)
            return {DealerKey.from_document(doc) for doc in cursor if all(f in doc for f in KEY_FIELDS)}
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Cannot read active dealers for {source}: {e}") from e

    def apply(self, source: str, to_upsert: Iterable[DealerRecord],
              to_retire: Iterable[DealerKey]) -> ApplyResult:
        """
        Upsert observed records and retire unobserved keys.

        Both batches are unordered: a failing item does not stop the others,
        and writes already applied stand.

        Raises:
            StoreUnavailable: the store cannot be reached
        """
        self.ensure_indexes()
        result = ApplyResult()

        upserts = [self._upsert_operation(source, record) for record in to_upsert]
        retirements = [self._retire_operation(source, key) for key in to_retire]

        if upserts:
            written, failed = self._bulk(source, upserts, result)
            result.upserted += written
            result.failed += failed
        if retirements:
            written, failed = self._bulk(source, retirements, result)
            result.retired += written
            result.failed += failed

        self.logger.info(
            f"[{source}] Store: {result.upserted} upserted, {result.retired} retired, "
            f"{result.failed} failed ({result.conflicts} conflict(s))"
        )
        return result

    def _upsert_operation(self, source: str, record: DealerRecord) -> UpdateOne:
        if record.source != source:
            record = record.model_copy(update={'source': source})
        document = record.to_document()
        document['inactive'] = False

        key = {'source': source}
        key.update(record.key.as_document())

        update = {'$set': document}
        missing = {field: "" for field in OPTIONAL_FIELDS if field not in document}
        if missing:
            update['$unset'] = missing
        return UpdateOne(key, update, upsert=True)

    @staticmethod
    def _retire_operation(source: str, key: DealerKey) -> UpdateOne:
        selector = {'source': source, 'inactive': {'$ne': True}}
        selector.update(key.as_document())
        return UpdateOne(selector, {'$set': {'inactive': True}})

    def _bulk(self, source: str, operations: List[UpdateOne], result: ApplyResult):
        """Run one unordered batch; returns (written, failed)."""
        try:
            outcome = self.dealers.bulk_write(operations, ordered=False)
            details = outcome.bulk_api_result
        except BulkWriteError as e:
            details = e.details
            for error in details.get('writeErrors', []):
                message = error.get('errmsg', 'unknown write error')
                if error.get('code') == DUPLICATE_KEY_CODE:
                    result.conflicts += 1
                    message = str(PersistenceConflict(message))
                result.errors.append(message)
                self.logger.warning(f"[{source}] Write {error.get('index')} failed: {message}")
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Store unreachable while writing {source}: {e}") from e

        written = (details.get('nUpserted') or 0) + (details.get('nModified') or 0)
        failed = len(details.get('writeErrors', []))
        return written, failed

    def record_run_completed(self, source: str, timestamp: Optional[datetime] = None):
        timestamp = timestamp or datetime.now()
        try:
            self.runs.update_one(
                {'source': source},
                {'$set': {'source': source, 'lastUpdated': timestamp}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StoreUnavailable(f"Cannot record run state for {source}: {e}") from e

    def last_run(self, source: str) -> Optional[ScrapeRunState]:
        try:
            document = self.runs.find_one({'source': source}, {'_id': 0})
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Cannot read run state for {source}: {e}") from e
        return ScrapeRunState.model_validate(document) if document else None

    def all_runs(self) -> List[ScrapeRunState]:
        try:
            documents = list(self.runs.find({}, {'_id': 0}).sort('source', ASCENDING))
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Cannot read run state: {e}") from e
        return [ScrapeRunState.model_validate(doc) for doc in documents]

    def find_record(self, source: str, key: DealerKey) -> Optional[DealerRecord]:
        selector = {'source': source}
        selector.update(key.as_document())
        document = self.dealers.find_one(selector)
        return DealerRecord.from_document(document) if document else None

    def count(self, source: str, active_only: bool = False) -> int:
        selector = {'source': source}
        if active_only:
            selector['inactive'] = {'$ne': True}
        try:
            return self.dealers.count_documents(selector)
        except ConnectionFailure as e:
            raise StoreUnavailable(f"Cannot count dealers for {source}: {e}") from e
