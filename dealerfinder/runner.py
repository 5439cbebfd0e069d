"""
One ingestion run for one source.
Coordinates the adapter, enrichment, reconciliation and persistence.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from .adapters import SiteAdapter
from .browser import BrowserManager, BrowserSession
from .errors import ExtractionError, ExtractionTimeout, NavigationError, SessionFailure
from .models import RawDealer, RunReport, RunStatus, SourceConfig
from .services import CoordinateResolver, Reconciler, enrich_with_coordinates
from .storage import PersistenceGateway
from .utils import get_logger


class SourceRunner:
    """
    Runs the full pipeline for one source:
    extract every search term, geocode, reconcile, persist.

    SessionFailure and StoreUnavailable propagate to the caller; the
    browser session is released before they do.
    """

    def __init__(
        self,
        source_config: SourceConfig,
        adapter: SiteAdapter,
        browser_manager: BrowserManager,
        resolver: CoordinateResolver,
        gateway: PersistenceGateway,
        reconciler: Optional[Reconciler] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = source_config
        self.source = source_config.name
        self.adapter = adapter
        self.browser_manager = browser_manager
        self.resolver = resolver
        self.gateway = gateway
        self.reconciler = reconciler or Reconciler()
        self.logger = get_logger()
        self._sleep = sleep

    async def run(self) -> RunReport:
        report = RunReport(source=self.source)
        if not self.config.search_terms:
            self.logger.warning(f"[{self.source}] No search terms configured, nothing to run")
            report.status = RunStatus.SKIPPED
            report.finished_at = datetime.now()
            return report

        self.logger.print_section(f"Running {self.source} ({len(self.config.search_terms)} search term(s))")

        batch: List[RawDealer] = []
        async with self.browser_manager.session() as session:
            for term in self.config.search_terms:
                dealers = await self._extract_term(term, session)
                if dealers is None:
                    report.terms_failed.append(term)
                    continue
                report.terms_processed.append(term)
                batch.extend(dealers)

        report.extracted = len(batch)

        await enrich_with_coordinates(batch, self.resolver, with_city=self.config.geocode_with_city)

        previously_active = await asyncio.to_thread(self.gateway.active_keys, self.source)
        diff = self.reconciler.reconcile(self.source, batch, previously_active)
        report.rejected = diff.rejected
        report.duplicates = diff.duplicates

        if report.terms_failed and diff.to_retire:
            self.logger.warning(
                f"[{self.source}] {len(report.terms_failed)} term(s) failed "
                f"({', '.join(report.terms_failed)}); retiring {len(diff.to_retire)} dealer(s) "
                f"not seen in this run may include dealers only those terms cover"
            )

        applied = await asyncio.to_thread(self.gateway.apply, self.source, diff.to_upsert, diff.to_retire)
        report.upserted = applied.upserted
        report.retired = applied.retired
        report.failed_writes = applied.failed

        await asyncio.to_thread(self.gateway.record_run_completed, self.source)

        if report.terms_failed or applied.failed:
            report.status = RunStatus.PARTIAL
        report.finished_at = datetime.now()
        return report

    async def _extract_term(self, term: str, session: BrowserSession) -> Optional[List[RawDealer]]:
        """
        Extract one term, retrying timeouts and navigation errors.
        Any other failure ends the term; SessionFailure ends the run.

        Returns:
            Raw dealers, or None once all attempts failed
        """
        attempts = max(1, self.config.retry_attempts)

        for attempt in range(1, attempts + 1):
            try:
                return await self.adapter.extract(term, session)
            except (ExtractionTimeout, NavigationError) as e:
                if e.source is None:
                    e.source = self.source
                if e.term is None:
                    e.term = term
                if attempt < attempts:
                    self.logger.warning(
                        f"[{self.source}] Attempt {attempt}/{attempts} for '{term}' failed: {e}. "
                        f"Retrying in {self.config.retry_delay_sec}s"
                    )
                    await self._sleep(self.config.retry_delay_sec)
                else:
                    self.logger.error(f"[{self.source}] Giving up on '{term}' after {attempts} attempt(s): {e}")
            except ExtractionError as e:
                self.logger.error(f"[{self.source}] Extraction failed for '{term}': {e}")
                break
            except SessionFailure:
                raise
            except Exception as e:
                self.logger.error(f"[{self.source}] Unexpected error for '{term}': {e}", exc_info=True)
                break

        return None
