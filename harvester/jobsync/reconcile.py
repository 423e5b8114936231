"""Merge one source's observed snapshot into the catalog.

Per record (sequential): insert if the detail url is new, otherwise touch it
(updated_at + reactivate). After every record has been handled, active catalog
rows of this source that were not observed are marked inactive. Descriptive
fields of existing rows are left alone so manual corrections survive re-scrapes.
Classified records flagged not relevant are reported as errors and never written.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Set, Union
import logging
import time

from .db import JobCatalogDB
from .errors import StoreWriteError
from .logging_config import log_event
from .models import ClassifiedRecord, PersistedJobRecord, RawRecord, ReconciliationOutcome, utcnow
from .settings import SETTINGS, Settings

logger = logging.getLogger(__name__)


class ReconciliationPipeline:
    def __init__(self, store: JobCatalogDB, settings: Settings | None = None):
        self.store = store
        self.settings = settings or SETTINGS

    def reconcile(self, source_name: str, records: Iterable[Union[ClassifiedRecord, RawRecord]]) -> ReconciliationOutcome:
        items = [r if isinstance(r, ClassifiedRecord) else ClassifiedRecord(record=r) for r in records]
        outcome = ReconciliationOutcome(source_name=source_name)
        t_start = time.time()
        rejected = [it for it in items if not it.relevant]
        if rejected:
            outcome.errors.extend(f"{it.detail_url}: not relevant ({it.reason or 'rejected by gate'})" for it in rejected)
            items = [it for it in items if it.relevant]
        if not items:
            # An empty snapshot looks exactly like a broken scrape; keep the catalog as is.
            logger.info(f"{source_name}: nothing to reconcile, stale marking skipped")
            return outcome

        try:
            source_id = self.store.get_or_create_source(source_name)
        except StoreWriteError as e:
            logger.error(f"{source_name}: cannot resolve source id: {e}")
            outcome.errors.extend(f"{it.detail_url}: source unavailable ({e})" for it in items)
            return outcome

        seen_urls: Set[str] = set()
        for item in items:
            url = item.detail_url
            if url in seen_urls:
                outcome.errors.append(f"{url}: duplicate detail_url in batch")
                continue
            seen_urls.add(url)
            self._reconcile_one(source_id, item, outcome)

        try:
            outcome.marked_stale = self.store.mark_inactive_except(
                source_id, seen_urls, chunk_size=self.settings.stale_chunk_size
            )
        except StoreWriteError as e:
            logger.error(f"{source_name}: stale marking failed: {e}")
            outcome.errors.append(f"stale marking failed: {e}")

        elapsed = round(time.time() - t_start, 2)
        self.log_outcome(outcome, elapsed)
        log_event(
            'reconcile_complete',
            source=source_name,
            inserted=outcome.inserted,
            refreshed=outcome.refreshed,
            marked_stale=outcome.marked_stale,
            errors=len(outcome.errors),
            elapsed_s=elapsed,
        )
        return outcome

    def _reconcile_one(self, source_id: int, item: ClassifiedRecord, outcome: ReconciliationOutcome):
        url = item.detail_url
        try:
            existing: Optional[PersistedJobRecord] = self.store.find_by_url(source_id, url)
            if existing is None:
                self.store.insert(PersistedJobRecord.from_record(item, source_id, now=utcnow()))
                outcome.inserted += 1
                logger.debug(f"Inserted {item.record.title} ({url})")
            else:
                self.store.touch(existing.id, now=utcnow())
                outcome.refreshed += 1
        except StoreWriteError as e:
            outcome.errors.append(f"{url}: {e}")
            logger.warning(f"Skipping record {url}: {e}")

    @staticmethod
    def log_outcome(outcome: ReconciliationOutcome, elapsed: float = 0.0):
        logger.info(f"{outcome.source_name} reconciled in {elapsed}s:")
        logger.info(f"   • {outcome.inserted} jobs inserted")
        logger.info(f"   • {outcome.refreshed} jobs refreshed")
        if outcome.marked_stale:
            logger.info(f"   • {outcome.marked_stale} jobs marked inactive")
        logger.info(f"   • {len(outcome.errors)} errors")
        for err in outcome.errors[:20]:
            logger.info(f"   - {err}")


def reconcile(store: JobCatalogDB, source_name: str, records: List[Union[ClassifiedRecord, RawRecord]]) -> ReconciliationOutcome:
    return ReconciliationPipeline(store).reconcile(source_name, records)
