import sqlite3
from contextlib import closing
from datetime import timedelta

import pytest

from harvester.jobsync import db as db_mod
from harvester.jobsync.db import JobCatalogDB
from harvester.jobsync.errors import StoreWriteError
from harvester.jobsync.models import ClassifiedRecord, PersistedJobRecord, RawRecord, utcnow
from harvester.jobsync.settings import SCHEMA_VERSION


def _job(db, source_id, i, **kw):
    rec = RawRecord(title=f"Dev {i}", detail_url=f"https://x.example/{i}", **kw)
    return db.insert(PersistedJobRecord.from_record(ClassifiedRecord(record=rec), source_id))


def test_schema_version_recorded(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    assert db.schema_version() == SCHEMA_VERSION


def test_get_or_create_source_is_stable(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    a = db.get_or_create_source('arbeitnow')
    b = db.get_or_create_source('swissdevjobs')
    assert a != b
    assert db.get_or_create_source('arbeitnow') == a


def test_insert_and_find_by_url_with_tags(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    sid = db.get_or_create_source('board')
    stored = _job(db, sid, 1, tags=['React', 'Python', 'React'])
    assert stored.id is not None
    found = db.find_by_url(sid, 'https://x.example/1')
    assert found is not None and found.id == stored.id
    assert found.tags == ['Python', 'React']
    other = db.get_or_create_source('other')
    assert db.find_by_url(other, 'https://x.example/1') is None


def test_duplicate_url_insert_raises_store_error(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    sid = db.get_or_create_source('board')
    _job(db, sid, 1)
    with pytest.raises(StoreWriteError):
        _job(db, sid, 1)


def test_touch_reactivates_and_bumps_updated_at(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    sid = db.get_or_create_source('board')
    job = _job(db, sid, 1)
    db.mark_inactive_except(sid, set())
    later = utcnow() + timedelta(hours=1)
    db.touch(job.id, now=later)
    fresh = db.find_by_url(sid, job.detail_url)
    assert fresh.is_active
    assert fresh.updated_at == later


def test_touch_unknown_id_raises(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    with pytest.raises(StoreWriteError):
        db.touch(12345)


def test_mark_inactive_in_chunks(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    sid = db.get_or_create_source('board')
    for i in range(7):
        _job(db, sid, i)
    keep = {'https://x.example/0', 'https://x.example/1'}
    assert db.mark_inactive_except(sid, keep, chunk_size=2) == 5
    assert {j.detail_url for j in db.fetch_by_source('board', include_inactive=False)} == keep
    # already inactive rows are not counted again
    assert db.mark_inactive_except(sid, keep, chunk_size=2) == 0


def test_stats_per_source(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    a = db.get_or_create_source('a')
    b = db.get_or_create_source('b')
    for i in range(3):
        _job(db, a, i)
    rec = RawRecord(title='QA', detail_url='https://y.example/1')
    db.insert(PersistedJobRecord.from_record(ClassifiedRecord(record=rec), b))
    db.mark_inactive_except(a, {'https://x.example/0'})
    stats = db.stats()
    assert (stats.total, stats.active, stats.inactive) == (4, 2, 2)
    assert stats.by_source['a'] == {'total': 3, 'active': 1, 'inactive': 2}
    assert stats.by_source['b'] == {'total': 1, 'active': 1, 'inactive': 0}


def test_undecodable_row_raises_store_error(tmp_path):
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    sid = db.get_or_create_source('board')
    job = _job(db, sid, 1)
    with closing(sqlite3.connect(db.db_path)) as conn, conn:
        conn.execute("UPDATE jobs SET updated_at='yesterday' WHERE id=?", (job.id,))
    with pytest.raises(StoreWriteError):
        db.find_by_url(sid, job.detail_url)
    with pytest.raises(StoreWriteError):
        db.fetch_all()


def test_every_operation_closes_its_connection(tmp_path, monkeypatch):
    opened = []

    class TrackingConnection(sqlite3.Connection):
        was_closed = False

        def close(self):
            self.was_closed = True
            super().close()

    real_connect = sqlite3.connect

    def tracking_connect(*a, **k):
        conn = real_connect(*a, factory=TrackingConnection, **k)
        opened.append(conn)
        return conn

    monkeypatch.setattr(db_mod.sqlite3, 'connect', tracking_connect)
    db = JobCatalogDB(tmp_path / 'c.sqlite')
    sid = db.get_or_create_source('board')
    job = _job(db, sid, 1)
    db.touch(job.id)
    with pytest.raises(StoreWriteError):
        db.touch(9999)
    db.mark_inactive_except(sid, set())
    db.fetch_all()
    db.stats()
    assert len(opened) >= 7
    assert all(c.was_closed for c in opened)
