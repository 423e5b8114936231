from __future__ import annotations
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set
from pydantic import ValidationError
from .models import PersistedJobRecord, CatalogStats, utcnow
from .settings import SCHEMA_VERSION, SETTINGS
from .errors import StoreWriteError

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS job_sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    detail_url TEXT NOT NULL UNIQUE,
    source_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    company TEXT,
    location TEXT,
    salary TEXT,
    description TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(source_id) REFERENCES job_sources(id)
);
CREATE INDEX IF NOT EXISTS idx_jobs_source_active ON jobs(source_id, is_active);
"""

TAGS_SQL = """
CREATE TABLE IF NOT EXISTS job_tags (
    job_id INTEGER NOT NULL,
    tag TEXT NOT NULL,
    PRIMARY KEY(job_id, tag),
    FOREIGN KEY(job_id) REFERENCES jobs(id)
);
"""

META_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

_JOB_COLS = "j.id, j.detail_url, j.source_id, j.title, j.company, j.location, j.salary, j.description, j.is_active, j.created_at, j.updated_at"


class JobCatalogDB:
    """SQLite-backed job catalog.

    One connection per operation, so instances can be shared between source
    worker threads. Rows are never deleted here; removal is `is_active = 0`.
    """
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path is not None else SETTINGS.db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.executescript(TAGS_SQL)
            conn.executescript(META_TABLE_SQL)
            cur = conn.execute("SELECT value FROM meta WHERE key='schema_version'")
            row = cur.fetchone()
            current_version = int(row[0]) if row else None
            if current_version != SCHEMA_VERSION:
                conn.execute("INSERT INTO meta(key,value) VALUES('schema_version', ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value", (str(SCHEMA_VERSION),))

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection for one operation: commit on success, roll back on error, always close."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        finally:
            conn.close()

    # Context manager helpers for tests
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def schema_version(self) -> Optional[int]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()
            return int(row[0]) if row else None

    def get_or_create_source(self, name: str) -> int:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO job_sources(name, created_at) VALUES (?, ?)",
                    (name, utcnow().isoformat()),
                )
                row = conn.execute("SELECT id FROM job_sources WHERE name=?", (name,)).fetchone()
                return int(row[0])
        except sqlite3.Error as e:
            raise StoreWriteError(f"get_or_create_source({name!r}) failed: {e}") from e

    def find_by_url(self, source_id: int, url: str) -> PersistedJobRecord | None:
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    f"SELECT {_JOB_COLS} FROM jobs j WHERE j.source_id=? AND j.detail_url=?",
                    (source_id, url),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._row_to_job(conn, row)
        except sqlite3.Error as e:
            raise StoreWriteError(f"find_by_url({url!r}) failed: {e}") from e

    def insert(self, job: PersistedJobRecord) -> PersistedJobRecord:
        """Insert a job and its tags in one transaction; returns the stored copy with id."""
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO jobs (detail_url, source_id, title, company, location, salary, description, is_active, created_at, updated_at)
                    VALUES (?,?,?,?,?,?,?,?,?,?)
                    """,
                    (
                        job.detail_url,
                        job.source_id,
                        job.title,
                        job.company,
                        job.location,
                        job.salary,
                        job.description,
                        1 if job.is_active else 0,
                        job.created_at.isoformat(),
                        job.updated_at.isoformat(),
                    ),
                )
                job_id = cur.lastrowid
                self._write_tags(conn, job_id, job.tags)
        except sqlite3.Error as e:
            raise StoreWriteError(f"insert({job.detail_url!r}) failed: {e}") from e
        return job.model_copy(update={'id': job_id})

    def _write_tags(self, conn: sqlite3.Connection, job_id: int, tags: Iterable[str]):
        rows = [(job_id, t.strip()) for t in dict.fromkeys(tags) if t and t.strip()]
        if rows:
            conn.executemany("INSERT OR IGNORE INTO job_tags(job_id, tag) VALUES (?, ?)", rows)

    def touch(self, job_id: int, now: Optional[datetime] = None):
        """Assert recency: bump updated_at and reactivate. Descriptive fields untouched."""
        ts = (now or utcnow()).isoformat()
        try:
            with self._connect() as conn:
                cur = conn.execute("UPDATE jobs SET updated_at=?, is_active=1 WHERE id=?", (ts, job_id))
                if cur.rowcount == 0:
                    raise StoreWriteError(f"touch({job_id}) matched no row")
        except sqlite3.Error as e:
            raise StoreWriteError(f"touch({job_id}) failed: {e}") from e

    def mark_inactive_except(self, source_id: int, active_urls: Set[str], chunk_size: Optional[int] = None) -> int:
        """Mark every active job of this source whose url is not in active_urls inactive.

        Updates are issued in chunks of `chunk_size` ids. Returns the number of rows changed.
        """
        chunk = max(1, chunk_size or SETTINGS.stale_chunk_size)
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "SELECT id, detail_url FROM jobs WHERE source_id=? AND is_active=1",
                    (source_id,),
                )
                stale_ids = [r[0] for r in cur.fetchall() if r[1] not in active_urls]
                ts = utcnow().isoformat()
                changed = 0
                for i in range(0, len(stale_ids), chunk):
                    part = stale_ids[i:i + chunk]
                    placeholders = ','.join('?' for _ in part)
                    res = conn.execute(
                        f"UPDATE jobs SET is_active=0, updated_at=? WHERE id IN ({placeholders})",
                        (ts, *part),
                    )
                    changed += res.rowcount
                return changed
        except sqlite3.Error as e:
            raise StoreWriteError(f"mark_inactive_except(source_id={source_id}) failed: {e}") from e

    def fetch_all(self) -> List[PersistedJobRecord]:
        try:
            with self._connect() as conn:
                cur = conn.execute(f"SELECT {_JOB_COLS} FROM jobs j ORDER BY j.id")
                return [self._row_to_job(conn, r) for r in cur.fetchall()]
        except sqlite3.Error as e:
            raise StoreWriteError(f"fetch_all failed: {e}") from e

    def fetch_by_source(self, source_name: str, include_inactive: bool = True) -> List[PersistedJobRecord]:
        sql = f"SELECT {_JOB_COLS} FROM jobs j JOIN job_sources s ON s.id = j.source_id WHERE s.name=?"
        if not include_inactive:
            sql += " AND j.is_active=1"
        try:
            with self._connect() as conn:
                cur = conn.execute(sql + " ORDER BY j.id", (source_name,))
                return [self._row_to_job(conn, r) for r in cur.fetchall()]
        except sqlite3.Error as e:
            raise StoreWriteError(f"fetch_by_source({source_name!r}) failed: {e}") from e

    def stats(self) -> CatalogStats:
        """Catalog snapshot: totals plus active / inactive counts per source."""
        with self._connect() as conn:
            cur = conn.execute(
                """
                SELECT s.name, COUNT(j.id), COALESCE(SUM(j.is_active), 0)
                FROM job_sources s LEFT JOIN jobs j ON j.source_id = s.id
                GROUP BY s.name ORDER BY s.name
                """
            )
            by_source = {}
            total = active = 0
            for name, count, act in cur.fetchall():
                by_source[name] = {'total': count, 'active': act, 'inactive': count - act}
                total += count
                active += act
        return CatalogStats(total=total, active=active, inactive=total - active, by_source=by_source)

    def _row_to_job(self, conn: sqlite3.Connection, row) -> PersistedJobRecord:
        """Decode one jobs row; a hand-edited row that no longer parses raises StoreWriteError."""
        tags = [r[0] for r in conn.execute("SELECT tag FROM job_tags WHERE job_id=? ORDER BY tag", (row[0],)).fetchall()]
        try:
            return PersistedJobRecord(
                id=row[0],
                detail_url=row[1],
                source_id=row[2],
                title=row[3],
                company=row[4],
                location=row[5],
                salary=row[6],
                description=row[7],
                is_active=bool(row[8]),
                created_at=datetime.fromisoformat(row[9]),
                updated_at=datetime.fromisoformat(row[10]),
                tags=tags,
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise StoreWriteError(f"job {row[0]} could not be decoded: {e}") from e
