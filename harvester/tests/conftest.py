"""Global pytest fixtures & fakes.
 - Sets env vars to disable file logging / event side effects.
 - Provides a fake render surface that behaves like a windowed (virtualized) list.
"""
from __future__ import annotations
import os
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault('HARVESTER_DISABLE_FILE_LOGS', '1')
os.environ.setdefault('HARVESTER_DISABLE_EVENTS', '1')

from harvester.jobsync.errors import ExtractionError, SourceFatalError
from harvester.jobsync.models import RawRecord
from harvester.jobsync.settings import SETTINGS
from harvester.jobsync.surface import ContainerMetrics


class FakeVirtualizedSurface:
    """Renders only the rows intersecting [offset, offset + client_height].

    `rows` can be any handle objects; row i occupies [i*row_height, (i+1)*row_height).
    `padding` adds empty scrollable space after the last row.
    `fail_after` makes the N+1th find_elements call raise SourceFatalError.
    """

    def __init__(self, rows: List[Any], row_height: int = 50, client_height: int = 300, virtualized: bool = True, padding: int = 0, fail_after: Optional[int] = None):
        self.rows = list(rows)
        self.row_height = row_height
        self.client_height = client_height
        self.virtualized = virtualized
        self.padding = padding
        self.fail_after = fail_after
        self.offset = 0.0
        self.scroll_calls: List[float] = []
        self.find_calls = 0
        self.waits: List[int] = []
        self.navigated: List[str] = []

    @property
    def scroll_height(self) -> int:
        return len(self.rows) * self.row_height + self.padding

    def navigate(self, url: str) -> None:
        self.navigated.append(url)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return None

    def probe_container(self, selector: Optional[str] = None) -> Optional[ContainerMetrics]:
        if not self.virtualized:
            return None
        return ContainerMetrics(scroll_height=float(max(self.scroll_height, self.client_height)), client_height=float(self.client_height))

    def scroll_container_to(self, offset: float) -> None:
        self.scroll_calls.append(offset)
        max_scroll = max(0, self.scroll_height - self.client_height)
        self.offset = min(max(0.0, float(offset)), float(max_scroll))

    def wait_ms(self, ms: int) -> None:
        self.waits.append(ms)

    def find_elements(self, selector: str) -> List[Any]:
        self.find_calls += 1
        if self.fail_after is not None and self.find_calls > self.fail_after:
            raise SourceFatalError('page crashed')
        if not self.virtualized:
            return list(self.rows)
        top, bottom = self.offset, self.offset + self.client_height
        out = []
        for i, row in enumerate(self.rows):
            start, end = i * self.row_height, (i + 1) * self.row_height
            if end > top and start < bottom:
                out.append(row)
        return out


class FakeExtractor:
    """Adapter over dict handles: {'title', 'url', 'broken'?}."""

    def __init__(self, source_name: str = 'fake'):
        self.source_name = source_name
        self.calls = 0

    def extract(self, handle: Dict[str, Any]) -> Optional[RawRecord]:
        self.calls += 1
        if handle.get('broken'):
            raise ExtractionError('detached node')
        if not handle.get('title'):
            return None
        return RawRecord(title=handle['title'], detail_url=handle['url'], source_name=self.source_name, company=handle.get('company'))


class FakeElement:
    """Minimal stand-in for a Playwright ElementHandle keyed by exact selector strings."""

    def __init__(self, text: str = '', attrs: Optional[Dict[str, str]] = None, children: Optional[Dict[str, List['FakeElement']]] = None):
        self._text = text
        self._attrs = attrs or {}
        self._children = children or {}

    def query_selector(self, selector: str):
        found = self._children.get(selector) or []
        return found[0] if found else None

    def query_selector_all(self, selector: str):
        return list(self._children.get(selector) or [])

    def text_content(self):
        return self._text

    def get_attribute(self, name: str):
        return self._attrs.get(name)


def make_rows(n: int, prefix: str = 'Engineer') -> List[Dict[str, Any]]:
    return [{'title': f'{prefix} {i}', 'url': f'/jobs/{i}'} for i in range(n)]


@pytest.fixture
def fast_settings(tmp_path):
    return replace(
        SETTINGS,
        settle_ms=0,
        max_scroll_attempts=1000,
        stagnation_limit=5,
        strict_collect=True,
        min_increment_px=100,
        stale_chunk_size=200,
        max_workers=2,
        db_path=tmp_path / 'catalog.sqlite',
        run_history_path=tmp_path / 'run_history.jsonl',
    )


@pytest.fixture
def surface_factory():
    def _factory(surface):
        @contextmanager
        def _open():
            yield surface
        return _open
    return _factory
