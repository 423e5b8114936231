from __future__ import annotations
"""Browser-backed source for boards that render their listing as a virtualized list.

Each fetch opens its own browser, navigates to the listing, runs the incremental
collector and (optionally) the detail-page enrichment pass.
"""
from typing import Callable, ContextManager, Dict, List, Optional
from dataclasses import dataclass, field
import logging

from ..collector import VirtualizedCollector
from ..detail import enrich_details
from ..errors import SourceFatalError
from ..extraction import CardExtractor
from ..models import RawRecord
from ..settings import SETTINGS, Settings
from ..surface import RenderSurface, open_surface

logger = logging.getLogger(__name__)


@dataclass
class VirtualizedListSource:
    name: str
    url: str
    item_selector: str = '.card'
    container_selector: Optional[str] = None
    base_url: str = ''
    strict: Optional[bool] = None
    fetch_details: bool = False
    detail_limit: Optional[int] = None
    extractor_options: Dict[str, object] = field(default_factory=dict)
    settings: Settings = field(default_factory=lambda: SETTINGS)
    # swapped out in tests for a fake surface factory
    surface_factory: Callable[[], ContextManager[RenderSurface]] | None = None

    def _open(self) -> ContextManager[RenderSurface]:
        if self.surface_factory is not None:
            return self.surface_factory()
        return open_surface(self.settings)

    def build_collector(self) -> VirtualizedCollector:
        extractor = CardExtractor(source_name=self.name, base_url=self.base_url or self.url, **self.extractor_options)
        return VirtualizedCollector(
            extractor,
            item_selector=self.item_selector,
            container_selector=self.container_selector,
            settings=self.settings,
            strict=self.strict,
        )

    def fetch(self) -> List[RawRecord]:
        collector = self.build_collector()
        with self._open() as surface:
            # A failed initial navigation means nothing was observed: surface the error
            # so the orchestrator reports it instead of reconciling an empty listing.
            surface.navigate(self.url)
            session = collector.run(surface)
            records = session.records
            if session.error and not records:
                raise SourceFatalError(f"{self.name}: collection failed with no records ({session.error})")
            if self.fetch_details and records:
                enrich_details(surface, records, limit=self.detail_limit)
        logger.info(f"{self.name}: collected {len(records)} unique records (stop={session.stop_reason})")
        return list(records.values())
