from __future__ import annotations
"""Arbeitnow public job board API source.

API: https://www.arbeitnow.com/api/job-board-api?page=N (paginated, `meta.last_page`).
No browser needed. A failing page aborts the whole fetch: reconciling a truncated
listing would mark every job on the missing pages stale.
"""
from typing import List, Optional
from dataclasses import dataclass
import logging
import re

import httpx

from ..errors import SourceFatalError
from ..models import RawRecord
from ..util.rate_limit import polite_get

logger = logging.getLogger(__name__)

API_URL = "https://www.arbeitnow.com/api/job-board-api"

TECH_KEYWORDS = [
    "JavaScript", "TypeScript", "React", "Vue.js", "Angular", "Node.js", "Python", "Java", "C#",
    "PHP", "Go", "Rust", "Kotlin", "Swift", "PostgreSQL", "MySQL", "MongoDB", "Redis", "AWS",
    "Azure", "Docker", "Kubernetes", "GraphQL", "Django", "Laravel", "Spring Boot", ".NET",
]


def _strip_html(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    # Very light HTML stripper
    return re.sub(r"\s+", " ", re.sub(r"<[^>]+>", " ", text)).strip()


def _location(location: Optional[str], remote: bool) -> Optional[str]:
    if remote:
        return f"{location} (Remote)" if location else "Remote"
    return location or None


def _technologies(tags: List[str], description: Optional[str]) -> List[str]:
    techs: List[str] = []
    for t in tags or []:
        t = (t or '').strip()
        if t and t not in techs:
            techs.append(t)
    desc = (description or '').lower()
    for kw in TECH_KEYWORDS:
        # word-ish boundary so "Go" does not match "good"
        if re.search(r"(?<![a-z0-9])" + re.escape(kw.lower()) + r"(?![a-z0-9])", desc) and kw not in techs:
            techs.append(kw)
    return techs


@dataclass
class ArbeitnowSource:
    name: str = "arbeitnow"
    api_url: str = API_URL
    max_pages: int = 20
    min_interval: float = 1.0

    def fetch(self) -> List[RawRecord]:
        items: List[RawRecord] = []
        page = 1
        with httpx.Client(timeout=20.0, headers={"Accept": "application/json", "User-Agent": "Mozilla/5.0 (compatible; harvester/0.1)"}) as client:
            while page <= self.max_pages:
                data = self._fetch_page(client, page)
                rows = data.get("data", []) if isinstance(data, dict) else []
                if not rows:
                    logger.info(f"{self.name}: no more jobs on page {page}")
                    break
                for r in rows:
                    rec = self._to_record(r)
                    if rec is not None:
                        items.append(rec)
                meta = data.get("meta") or {}
                last_page = meta.get("last_page")
                logger.info(f"{self.name}: page {page}/{last_page or '?'} -> {len(rows)} jobs")
                if last_page is not None:
                    if page >= int(last_page):
                        break
                elif not (data.get("links") or {}).get("next"):
                    break
                page += 1
        return items

    def _fetch_page(self, client: httpx.Client, page: int) -> dict:
        try:
            resp = polite_get(self.api_url, client=client, params={"page": page}, min_interval=self.min_interval)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SourceFatalError(f"{self.name} page {page} failed: {e}") from e

    def _to_record(self, r: dict) -> Optional[RawRecord]:
        title = (r.get("title") or "").strip()
        url = (r.get("url") or "").strip()
        if not title or not url:
            return None
        description = _strip_html(r.get("description"))
        return RawRecord(
            title=title,
            detail_url=url,
            source_name=self.name,
            company=r.get("company_name"),
            location=_location(r.get("location"), bool(r.get("remote"))),
            description=description,
            tags=_technologies(r.get("tags") or [], description),
        )
