"""
Normalization and deduplication of raw dealer tuples.
Turns one run's observations into the upsert/retire diff for a source.
"""

from typing import Iterable, List, Optional, Set

from ..errors import InvalidRecord
from ..models import DealerKey, DealerRecord, RawDealer, ReconcileResult
from ..utils import clean, clean_optional, clean_services, get_logger, split_postal_city


def normalize_raw(source: str, raw: RawDealer) -> DealerRecord:
    """
    Build the canonical record for one raw tuple.

    Strings are trimmed but keep their case. A combined "PLZ City" string
    fills postal code and city when the adapter did not set them apart.

    Raises:
        InvalidRecord: name or postal code empty after trimming
    """
    postal_code = clean(raw.postal_code)
    city = clean(raw.city)
    if raw.postal_city and (not postal_code or not city):
        split_postal, split_city = split_postal_city(raw.postal_city)
        postal_code = postal_code or split_postal
        city = city or split_city

    name = clean(raw.name)
    if not name or not postal_code:
        raise InvalidRecord(f"Missing name or postal code: name={name!r} postal_code={postal_code!r}")

    latitude, longitude = raw.latitude, raw.longitude
    if latitude is None or longitude is None:
        latitude = longitude = None

    return DealerRecord(
        source=source,
        name=name,
        street=clean(raw.street),
        postal_code=postal_code,
        city=city,
        phone=clean_optional(raw.phone),
        email=clean_optional(raw.email),
        website=clean_optional(raw.website),
        services=clean_services(raw.services) or None,
        latitude=latitude,
        longitude=longitude,
        inactive=False,
    )


class Reconciler:
    """
    Reconciles one run's raw batch against the active keys in the store.
    """

    def __init__(self):
        self.logger = get_logger()

    def reconcile(
        self,
        source: str,
        raw_batch: Iterable[RawDealer],
        previously_active: Optional[Iterable[DealerKey]] = None,
    ) -> ReconcileResult:
        """
        Compute records to upsert and keys to retire.

        Duplicates by (name, street, postal code), compared case-insensitively,
        keep the first occurrence; later ones are dropped without merging.
        Every previously active key not observed in this batch is retired.
        """
        records: List[DealerRecord] = []
        seen: Set[DealerKey] = set()
        rejected = 0
        duplicates = 0

        for raw in raw_batch:
            try:
                record = normalize_raw(source, raw)
            except InvalidRecord as e:
                rejected += 1
                self.logger.debug(f"[{source}] Dropped raw dealer: {e}")
                continue

            key = record.key
            if key in seen:
                duplicates += 1
                continue
            seen.add(key)
            records.append(record)

        previous = set(previously_active or ())
        to_retire = sorted(previous - seen)

        self.logger.info(
            f"[{source}] Reconciled: {len(records)} to upsert, {len(to_retire)} to retire, "
            f"{duplicates} duplicate(s), {rejected} rejected"
        )

        return ReconcileResult(
            to_upsert=records,
            to_retire=to_retire,
            rejected=rejected,
            duplicates=duplicates,
        )
