"""Fan out collect -> gate -> reconcile per source and report the result.

Sources run concurrently in worker threads, each owning its own render surface.
A crashing source is caught and reported as an error outcome; siblings carry on.
The store is injected once and shared; it is the only shared mutable state.
"""
from __future__ import annotations
from typing import Dict, List, Optional
import concurrent.futures
import logging
import time

from .classifier import ClassifierGate, apply_gate
from .db import JobCatalogDB
from .history import append_history
from .logging_config import log_event
from .models import CatalogStats, RunReport, SourceOutcome
from .reconcile import ReconciliationPipeline
from .settings import SETTINGS, Settings
from .sources.base import LoadedSource, dedupe_records

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(self, store: JobCatalogDB, sources: List[LoadedSource], gate: Optional[ClassifierGate] = None, settings: Settings | None = None, write_history: bool = True):
        self.store = store
        self.sources = sources
        self.gate = gate
        self.settings = settings or SETTINGS
        self.pipeline = ReconciliationPipeline(store, self.settings)
        self.write_history = write_history

    def run_all(self, names: Optional[List[str]] = None) -> RunReport:
        selected = [s for s in self.sources if not names or s.name in names]
        if names:
            unknown = sorted(set(names) - {s.name for s in selected})
            for n in unknown:
                logger.warning(f"Unknown source requested: {n}")
        logger.info(f"Starting {len(selected)} sources: {', '.join(s.name for s in selected)}")
        start = time.time()
        outcomes: List[SourceOutcome] = []
        if selected:
            workers = max(1, min(self.settings.max_workers, len(selected)))
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix='source') as ex:
                futures = {ex.submit(self.process_source, s): s for s in selected}
                for fut in concurrent.futures.as_completed(futures):
                    src = futures[fut]
                    try:
                        outcomes.append(fut.result())
                    except Exception as e:
                        logger.exception(f"{src.name}: task failed outside source processing")
                        outcomes.append(SourceOutcome(source_name=src.name, status='error', error=str(e)))
        # stable report order regardless of completion order
        order = {s.name: i for i, s in enumerate(selected)}
        outcomes.sort(key=lambda o: order.get(o.source_name, len(order)))
        report = RunReport(outcomes=outcomes, elapsed_s=round(time.time() - start, 2))
        self.log_results(report)
        report.stats = self.log_catalog_stats()
        if self.write_history:
            append_history(self.summary(report), self.settings.run_history_path)
        log_event('run_complete', sources=len(outcomes), failed=len(report.failed), elapsed_s=report.elapsed_s)
        return report

    def run_one(self, name: str) -> RunReport:
        return self.run_all([name])

    def process_source(self, source: LoadedSource) -> SourceOutcome:
        t0 = time.time()
        outcome = SourceOutcome(source_name=source.name)
        try:
            logger.info(f"Processing {source.name}...")
            fetched = source.instance.fetch() or []
            records = dedupe_records(fetched, source.name)
            outcome.collected = len(records)
            logger.info(f"Collected {len(fetched)} records from {source.name} ({len(records)} unique)")
            gate = self.gate or source.gate
            kept, dropped = apply_gate(records.values(), gate)
            outcome.filtered = len(dropped)
            outcome.reconciliation = self.pipeline.reconcile(source.name, kept)
        except Exception as e:
            outcome.status = 'error'
            outcome.error = f"{type(e).__name__}: {e}"
            logger.error(f"Error processing {source.name}: {outcome.error}", exc_info=True)
            log_event('source_error', source=source.name, message=outcome.error)
        outcome.elapsed_s = round(time.time() - t0, 2)
        return outcome

    def log_results(self, report: RunReport):
        logger.info(f"All sources completed in {report.elapsed_s:.1f}s")
        for o in report.outcomes:
            if o.status == 'success' and o.reconciliation is not None:
                r = o.reconciliation
                logger.info(
                    f"{o.source_name}: collected={o.collected} filtered={o.filtered} inserted={r.inserted} "
                    f"refreshed={r.refreshed} stale={r.marked_stale} errors={len(r.errors)}"
                )
            else:
                logger.info(f"{o.source_name}: FAILED {o.error}")

    def log_catalog_stats(self) -> Optional[CatalogStats]:
        try:
            stats = self.store.stats()
        except Exception:
            logger.exception("Error fetching catalog stats")
            return None
        logger.info("Current catalog statistics:")
        logger.info(f"   • Total jobs: {stats.total}")
        logger.info(f"   • Active jobs: {stats.active}")
        logger.info(f"   • Inactive jobs: {stats.inactive}")
        return stats

    @staticmethod
    def summary(report: RunReport) -> Dict[str, object]:
        return {
            'elapsed_s': report.elapsed_s,
            'sources': [o.model_dump(mode='json') for o in report.outcomes],
            'failed_sources': [o.source_name for o in report.failed],
            'catalog': report.stats.model_dump(mode='json') if report.stats else None,
        }
