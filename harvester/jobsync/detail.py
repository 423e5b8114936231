"""Optional detail-page enrichment, run as a separate pass after collection.

Keeping it out of the scroll loop means the list's virtualized window is never
disturbed by navigation, and a slow detail page cannot stall collection.
"""
from __future__ import annotations
from typing import Dict, Optional
import logging

from .errors import SourceFatalError
from .logging_config import log_event
from .models import RawRecord, normalize_text
from .surface import RenderSurface

logger = logging.getLogger(__name__)

DESCRIPTION_SELECTORS = [
    '[itemprop="description"]',
    '.job-description',
    '[class*="description"]',
    'article',
    'main',
]

MAX_DESCRIPTION_CHARS = 20000
MAX_CONSECUTIVE_FAILURES = 3


def read_description(surface: RenderSurface, selectors=None) -> Optional[str]:
    for sel in selectors or DESCRIPTION_SELECTORS:
        for el in surface.find_elements(sel)[:1]:
            try:
                txt = normalize_text(el.text_content() or '')
            except SourceFatalError:
                raise
            except Exception as e:
                # node detached or execution context destroyed mid-read
                logger.debug(f"Skipping unreadable description element {sel!r}: {e}")
                continue
            if txt:
                return txt[:MAX_DESCRIPTION_CHARS]
    return None


def enrich_details(surface: RenderSurface, records: Dict[str, RawRecord], limit: Optional[int] = None, selectors=None) -> int:
    """Fill `description` for records lacking one by visiting their detail page.

    Records are replaced in place (same key). A failing page, whatever the error,
    only loses its own description; returns how many records were enriched.
    """
    enriched = 0
    failures = 0
    for i, (key, rec) in enumerate(list(records.items())):
        if limit is not None and i >= limit:
            break
        if rec.description:
            continue
        try:
            surface.navigate(rec.detail_url)
            desc = read_description(surface, selectors)
        except Exception as e:
            failures += 1
            logger.debug(f"Detail page failed for {rec.detail_url}: {e}", exc_info=not isinstance(e, SourceFatalError))
            if failures >= MAX_CONSECUTIVE_FAILURES:
                logger.warning(f"Stopping detail enrichment after {failures} consecutive page failures")
                break
            continue
        failures = 0
        if desc:
            records[key] = rec.model_copy(update={'description': desc})
            enriched += 1
    logger.info(f"Detail enrichment: {enriched}/{len(records)} records updated")
    log_event('detail_enriched', enriched=enriched, total=len(records))
    return enriched
