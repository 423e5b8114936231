from __future__ import annotations
"""Job card extraction.

An extraction adapter turns one rendered item handle into a `RawRecord` or
returns None to skip it. `CardExtractor` is the default adapter for card-style
listings; selectors are plain CSS and can be overridden per source.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, runtime_checkable
from urllib.parse import urljoin
import re
import logging

from pydantic import ValidationError

from .errors import ExtractionError
from .models import RawRecord, normalize_text

logger = logging.getLogger(__name__)


@runtime_checkable
class ExtractionAdapter(Protocol):
    def extract(self, handle: Any) -> Optional[RawRecord]:  # pragma: no cover - interface definition
        ...


# "Acme AG Bahnhofstrasse 1, Zürich" -> ("Acme AG", "Bahnhofstrasse 1, Zürich")
COMPANY_LOCATION_PATTERNS = [
    re.compile(r"^(.+?\s(?:AG|GmbH|SA|Ltd|Inc|Corp|LLC|AB|Oy))\s*(.+)$", re.I),
    re.compile(r"^(.+?)\s+([A-Z][a-z]+(?:strasse|gasse|weg|platz|ring)\s*\d+.*)$", re.I),
]
CURRENCY_HINTS = ('CHF', '€', '$', '£')


def split_company_location(text: str) -> tuple[Optional[str], Optional[str]]:
    text = normalize_text(text)
    for pattern in COMPANY_LOCATION_PATTERNS:
        m = pattern.match(text)
        if m:
            return m.group(1).strip(), m.group(2).strip()
    return None, None


def _text(handle: Any, selector: str) -> Optional[str]:
    el = handle.query_selector(selector)
    if not el:
        return None
    txt = normalize_text(el.text_content() or '')
    return txt or None


def _attr(handle: Any, selector: str, attr: str) -> Optional[str]:
    el = handle.query_selector(selector)
    if not el:
        return None
    v = el.get_attribute(attr)
    return v.strip() if v else None


@dataclass
class CardExtractor:
    source_name: str
    base_url: str = ''
    title_selector: str = 'a[href*="job"], h1, h2, h3, h4, .job-title, [class*="title"]'
    link_selector: str = 'a[href*="job"]'
    company_selectors: List[str] = field(default_factory=lambda: [
        '[itemprop="hiringOrganization"]',
        '[data-company]',
        '.company-name',
        '[class*="company"]',
    ])
    location_selectors: List[str] = field(default_factory=lambda: [
        '[itemprop="jobLocation"]',
        '[class*="location"]',
    ])
    salary_selector: str = '[class*="salary"], [class*="wage"]'
    tag_selector: str = '.job-teaser-technology-badges .badge, .technology-badge, [class*="tag"]'

    def extract(self, handle: Any) -> Optional[RawRecord]:
        try:
            title = _text(handle, self.title_selector)
            if not title:
                return None
            href = _attr(handle, self.link_selector, 'href') or ''
            if not href:
                return None
            url = href if href.startswith('http') else urljoin(self.base_url or '', href)
            company = self._first(handle, self.company_selectors)
            location = self._first(handle, self.location_selectors)
            if not company:
                company, loc2 = self._company_from_links(handle)
                location = location or loc2
            salary = _text(handle, self.salary_selector)
            tags = []
            for badge in handle.query_selector_all(self.tag_selector) or []:
                t = normalize_text(badge.text_content() or '')
                if t and t not in tags:
                    tags.append(t)
            return RawRecord(
                title=title,
                detail_url=url,
                source_name=self.source_name,
                company=company,
                location=location,
                salary=salary,
                tags=tags,
            )
        except ValidationError as e:
            raise ExtractionError(f"invalid card record: {e.errors()[0].get('msg')}") from e
        except Exception as e:
            # element detached / recycled mid-read by the virtualized list
            raise ExtractionError(f"card read failed: {e}") from e

    def _first(self, handle: Any, selectors: List[str]) -> Optional[str]:
        for sel in selectors:
            txt = _text(handle, sel)
            if txt and not any(c in txt for c in CURRENCY_HINTS):
                return txt
        return None

    def _company_from_links(self, handle: Any) -> tuple[Optional[str], Optional[str]]:
        # Some boards render "Company AG Street 1, City" as one link
        for link in handle.query_selector_all('a') or []:
            txt = normalize_text(link.text_content() or '')
            if len(txt) <= 10:
                continue
            company, location = split_company_location(txt)
            if company:
                return company, location
        return None, None
