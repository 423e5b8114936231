from __future__ import annotations
"""
Incremental collector for virtualized (windowed) job lists.

Virtualized lists only keep the rows near the viewport in the DOM and recycle
nodes as you scroll, so "scroll to the bottom and read everything" loses rows.
We scroll the list container in steps of about a third of its visible height,
read whatever is rendered after each step settles, and merge rows into a map
keyed by a content-derived key (title + url). Overlapping windows therefore
never double count, and no row falls between two windows.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging
import time

from .errors import (
    AttemptCapReached,
    ContainerNotFound,
    ExtractionError,
    SourceFatalError,
    StagnationTimeout,
)
from .extraction import ExtractionAdapter
from .logging_config import log_event
from .models import RawRecord
from .settings import SETTINGS, Settings
from .surface import ContainerMetrics, RenderSurface

logger = logging.getLogger(__name__)

STOP_FALLBACK = 'fallback'
STOP_END = 'end'
STOP_ATTEMPT_CAP = 'attempt_cap'
STOP_STAGNATION = 'stagnation'
STOP_FATAL = 'fatal'


@dataclass
class CollectionSession:
    offset: float = 0.0
    max_scroll: float = 0.0
    client_height: float = 0.0
    increment: float = 0.0
    records: Dict[str, RawRecord] = field(default_factory=dict)
    stagnant: int = 0
    attempts: int = 0
    extraction_failures: int = 0
    stop_reason: Optional[str] = None
    error: Optional[str] = None

    def merge(self, records: List[RawRecord]) -> int:
        """Add records whose key is unseen; first occurrence wins. Returns count added."""
        added = 0
        for rec in records:
            key = rec.key
            if key in self.records:
                continue
            self.records[key] = rec
            added += 1
        return added


class VirtualizedCollector:
    def __init__(
        self,
        adapter: ExtractionAdapter,
        item_selector: str,
        container_selector: Optional[str] = None,
        settings: Settings | None = None,
        strict: Optional[bool] = None,
    ):
        self.adapter = adapter
        self.item_selector = item_selector
        self.container_selector = container_selector
        self.settings = settings or SETTINGS
        self.strict = self.settings.strict_collect if strict is None else strict

    def collect(self, surface: RenderSurface) -> Dict[str, RawRecord]:
        return self.run(surface).records

    def run(self, surface: RenderSurface) -> CollectionSession:
        session = CollectionSession()
        start = time.time()
        log_event('collect_start', item_selector=self.item_selector, strict=self.strict)
        try:
            try:
                metrics = self._probe(surface)
            except ContainerNotFound as signal:
                logger.info(f"No virtualized container ({signal}); single extraction pass")
                self._extract_step(surface, session)
                session.stop_reason = STOP_FALLBACK
                log_event('collect_fallback', collected=len(session.records))
                return session
            self._scan(surface, session, metrics)
        except StagnationTimeout as signal:
            session.stop_reason = STOP_STAGNATION
            logger.info(f"Stopping scan: {signal}")
        except AttemptCapReached as signal:
            session.stop_reason = STOP_ATTEMPT_CAP
            logger.warning(f"Stopping scan: {signal}")
        except SourceFatalError as e:
            session.stop_reason = STOP_FATAL
            session.error = str(e)
            logger.error(f"Render surface failed mid-scan, keeping {len(session.records)} partial records: {e}")
        except Exception as e:
            session.stop_reason = STOP_FATAL
            session.error = f"{type(e).__name__}: {e}"
            logger.exception(f"Unexpected collector failure, keeping {len(session.records)} partial records")
        finally:
            elapsed = round(time.time() - start, 2)
            logger.info(
                f"Collection finished: records={len(session.records)} attempts={session.attempts} "
                f"stop={session.stop_reason} skipped_items={session.extraction_failures} elapsed={elapsed}s"
            )
            log_event(
                'collect_complete',
                collected=len(session.records),
                attempts=session.attempts,
                stop_reason=session.stop_reason,
                elapsed_s=elapsed,
            )
        return session

    def _probe(self, surface: RenderSurface) -> ContainerMetrics:
        metrics = surface.probe_container(self.container_selector)
        if metrics is None:
            raise ContainerNotFound('no scrollable list container')
        if metrics.max_scroll <= 0:
            raise ContainerNotFound(f'container does not scroll (max_scroll={metrics.max_scroll})')
        return metrics

    def _scan(self, surface: RenderSurface, session: CollectionSession, metrics: ContainerMetrics):
        session.client_height = metrics.client_height
        session.max_scroll = metrics.max_scroll
        session.increment = max(metrics.client_height / 3, float(self.settings.min_increment_px))
        logger.debug(f"Scanning container max_scroll={session.max_scroll} increment={session.increment}")
        session.offset = 0.0
        while True:
            if session.attempts >= self.settings.max_scroll_attempts:
                raise AttemptCapReached(f'{session.attempts} scroll attempts')
            surface.scroll_container_to(session.offset)
            surface.wait_ms(self.settings.settle_ms)
            session.attempts += 1
            added = self._extract_step(surface, session)
            if added:
                session.stagnant = 0
            else:
                session.stagnant += 1
            logger.debug(
                f"Scroll attempt {session.attempts} offset={session.offset:.0f} added={added} "
                f"total={len(session.records)} stagnant={session.stagnant}"
            )
            if self.strict and session.stagnant >= self.settings.stagnation_limit:
                raise StagnationTimeout(f'no new items for {session.stagnant} consecutive attempts')
            self._refresh_bounds(surface, session)
            if session.offset >= session.max_scroll:
                session.stop_reason = STOP_END
                return
            # last step is clamped so the window at max_scroll is always read
            session.offset = min(session.offset + session.increment, session.max_scroll)

    def _refresh_bounds(self, surface: RenderSurface, session: CollectionSession):
        # feeds that append rows while scrolling grow scrollHeight
        metrics = surface.probe_container(self.container_selector)
        if metrics is not None and metrics.max_scroll > session.max_scroll:
            session.max_scroll = metrics.max_scroll

    def _extract_step(self, surface: RenderSurface, session: CollectionSession) -> int:
        handles = surface.find_elements(self.item_selector)
        found: List[RawRecord] = []
        for handle in handles:
            try:
                rec = self.adapter.extract(handle)
            except SourceFatalError:
                raise
            except ExtractionError as e:
                session.extraction_failures += 1
                logger.debug(f"Skipping item: {e}")
                continue
            except Exception as e:
                session.extraction_failures += 1
                logger.debug(f"Skipping item after adapter error: {e}", exc_info=True)
                continue
            if rec is not None:
                found.append(rec)
        return session.merge(found)
