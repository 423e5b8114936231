from dataclasses import replace

from hypothesis import given, settings as hsettings, strategies as st

from conftest import FakeExtractor, FakeVirtualizedSurface, make_rows
from harvester.jobsync.collector import (
    STOP_ATTEMPT_CAP,
    STOP_END,
    STOP_FALLBACK,
    STOP_FATAL,
    STOP_STAGNATION,
    VirtualizedCollector,
)
from harvester.jobsync.models import canonical_key
from harvester.jobsync.settings import SETTINGS

FAST = replace(SETTINGS, settle_ms=0, max_scroll_attempts=10000, stagnation_limit=5, min_increment_px=100)


def _collector(settings=FAST, strict=False):
    return VirtualizedCollector(FakeExtractor(), item_selector='.card', settings=settings, strict=strict)


def test_two_overlapping_windows_dedupe_to_two_records():
    rows = [
        {'title': 'A', 'url': '/a'},
        {'title': 'A', 'url': '/a'},
        {'title': 'B', 'url': '/b'},
    ]
    surface = FakeVirtualizedSurface(rows, row_height=100, client_height=200)
    session = _collector().run(surface)
    assert set(session.records) == {canonical_key('A', '/a'), canonical_key('B', '/b')}
    assert session.stop_reason == STOP_END
    assert surface.scroll_calls == [0.0, 100.0]


def test_scan_reads_final_partial_window():
    # 25 rows * 40px, client 300 -> max_scroll 700, increment 100; last rows only visible at 700
    surface = FakeVirtualizedSurface(make_rows(25), row_height=40, client_height=300)
    session = _collector().run(surface)
    assert len(session.records) == 25
    assert surface.scroll_calls[-1] == 700.0
    assert session.stop_reason == STOP_END


def test_increment_is_a_third_of_viewport_when_large():
    surface = FakeVirtualizedSurface(make_rows(100), row_height=50, client_height=900)
    session = _collector().run(surface)
    assert session.increment == 300.0
    assert len(session.records) == 100


@hsettings(max_examples=60, deadline=None)
@given(
    n=st.integers(min_value=0, max_value=60),
    row_height=st.integers(min_value=10, max_value=80),
    client_height=st.integers(min_value=100, max_value=600),
)
def test_every_row_is_collected_exactly_once(n, row_height, client_height):
    surface = FakeVirtualizedSurface(make_rows(n), row_height=row_height, client_height=client_height)
    records = _collector().collect(surface)
    assert len(records) == n
    assert {r.detail_url for r in records.values()} == {f'/jobs/{i}' for i in range(n)}


_titles = st.sampled_from(['Dev', 'Dev ', ' Dev', 'Data  Engineer', 'Data Engineer', 'QA'])
_urls = st.sampled_from(['/1', '/2', '/3'])


@hsettings(max_examples=60, deadline=None)
@given(pairs=st.lists(st.tuples(_titles, _urls), min_size=1, max_size=40))
def test_map_holds_one_record_per_canonical_key(pairs):
    rows = [{'title': t, 'url': u} for t, u in pairs]
    surface = FakeVirtualizedSurface(rows, row_height=30, client_height=150)
    records = _collector().collect(surface)
    assert set(records) == {canonical_key(t, u) for t, u in pairs}
    for key, rec in records.items():
        assert rec.key == key


def test_first_occurrence_wins_on_duplicate_key():
    rows = [
        {'title': 'Dev', 'url': '/1', 'company': 'First'},
        {'title': 'Dev', 'url': '/1', 'company': 'Second'},
    ]
    surface = FakeVirtualizedSurface(rows, virtualized=False)
    records = _collector().collect(surface)
    assert [r.company for r in records.values()] == ['First']


def test_fallback_single_pass_without_container():
    surface = FakeVirtualizedSurface(make_rows(7), virtualized=False)
    session = _collector().run(surface)
    assert session.stop_reason == STOP_FALLBACK
    assert len(session.records) == 7
    assert surface.scroll_calls == []
    assert surface.find_calls == 1


def test_fallback_when_container_does_not_scroll():
    surface = FakeVirtualizedSurface(make_rows(3), row_height=50, client_height=300)
    session = _collector().run(surface)
    assert session.stop_reason == STOP_FALLBACK
    assert len(session.records) == 3
    assert surface.scroll_calls == []


def test_strict_mode_stops_after_stagnation_limit():
    surface = FakeVirtualizedSurface(make_rows(3), row_height=50, client_height=300, padding=5000)
    strict_settings = replace(FAST, stagnation_limit=3)
    session = _collector(settings=strict_settings, strict=True).run(surface)
    assert session.stop_reason == STOP_STAGNATION
    assert session.attempts == 4
    assert len(session.records) == 3


def test_non_strict_mode_ignores_stagnation_and_reaches_end():
    surface = FakeVirtualizedSurface(make_rows(3), row_height=50, client_height=300, padding=1000)
    session = _collector(settings=replace(FAST, stagnation_limit=2), strict=False).run(surface)
    assert session.stop_reason == STOP_END
    assert len(session.records) == 3


def test_attempt_cap_returns_partial_records():
    surface = FakeVirtualizedSurface(make_rows(200), row_height=50, client_height=300)
    session = _collector(settings=replace(FAST, max_scroll_attempts=5)).run(surface)
    assert session.stop_reason == STOP_ATTEMPT_CAP
    assert session.attempts == 5
    assert 0 < len(session.records) < 200


def test_fatal_surface_error_keeps_partial_records():
    surface = FakeVirtualizedSurface(make_rows(100), row_height=50, client_height=300, fail_after=2)
    session = _collector().run(surface)
    assert session.stop_reason == STOP_FATAL
    assert session.error
    assert len(session.records) > 0
    assert len(session.records) < 100


def test_failing_items_are_skipped_and_counted():
    rows = make_rows(6)
    rows[2]['broken'] = True
    rows[4] = {'title': '', 'url': '/blank'}
    surface = FakeVirtualizedSurface(rows, virtualized=False)
    session = _collector().run(surface)
    assert len(session.records) == 4
    assert session.extraction_failures == 1
    assert all(r.detail_url not in ('/jobs/2', '/blank') for r in session.records.values())


def test_growing_feed_extends_scan():
    class GrowingSurface(FakeVirtualizedSurface):
        def scroll_container_to(self, offset):
            # append a page of rows once the user nears the bottom
            if len(self.rows) < 40 and offset + self.client_height >= self.scroll_height - 50:
                self.rows.extend({'title': f'Late {i}', 'url': f'/late/{i}'} for i in range(len(self.rows), len(self.rows) + 20))
            super().scroll_container_to(offset)

    surface = GrowingSurface(make_rows(20), row_height=50, client_height=300)
    session = _collector().run(surface)
    assert len(session.records) == 40
    assert session.stop_reason == STOP_END


def test_settle_wait_between_steps():
    surface = FakeVirtualizedSurface(make_rows(20), row_height=50, client_height=300)
    _collector(settings=replace(FAST, settle_ms=7)).run(surface)
    assert surface.waits and all(w == 7 for w in surface.waits)
    assert len(surface.waits) == len(surface.scroll_calls)
