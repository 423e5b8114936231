from __future__ import annotations
from datetime import datetime, timezone
from typing import List, Optional, Dict
import re
from pydantic import BaseModel, field_validator, Field

_WS_RGX = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Strip and collapse internal whitespace."""
    if not value:
        return ""
    return _WS_RGX.sub(" ", value).strip()


def canonical_key(title: str, detail_url: str) -> str:
    """Intra-collection dedup key; the catalog itself keys on detail_url only."""
    return f"{normalize_text(title)}_{normalize_text(detail_url)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawRecord(BaseModel):
    title: str
    detail_url: str
    source_name: str = ""
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("title", "detail_url")
    @classmethod
    def require_text(cls, v: str):
        v = normalize_text(v)
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def ensure_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @property
    def key(self) -> str:
        return canonical_key(self.title, self.detail_url)


class ClassifiedRecord(BaseModel):
    record: RawRecord
    relevant: bool = True
    reason: Optional[str] = None

    @property
    def detail_url(self) -> str:
        return self.record.detail_url


class PersistedJobRecord(BaseModel):
    id: Optional[int] = None
    detail_url: str
    source_id: int
    title: str
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_record(cls, classified: ClassifiedRecord, source_id: int, now: Optional[datetime] = None) -> "PersistedJobRecord":
        rec = classified.record
        ts = now or utcnow()
        return cls(
            detail_url=rec.detail_url,
            source_id=source_id,
            title=rec.title,
            company=rec.company,
            location=rec.location,
            salary=rec.salary,
            description=rec.description,
            tags=list(rec.tags),
            is_active=True,
            created_at=ts,
            updated_at=ts,
        )


class ReconciliationOutcome(BaseModel):
    source_name: str
    inserted: int = 0
    refreshed: int = 0
    marked_stale: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.inserted + self.refreshed


class SourceOutcome(BaseModel):
    source_name: str
    status: str = "success"  # success | error
    collected: int = 0
    filtered: int = 0
    reconciliation: Optional[ReconciliationOutcome] = None
    error: Optional[str] = None
    elapsed_s: float = 0.0


class CatalogStats(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    by_source: Dict[str, Dict[str, int]] = Field(default_factory=dict)


class RunReport(BaseModel):
    outcomes: List[SourceOutcome] = Field(default_factory=list)
    stats: Optional[CatalogStats] = None
    elapsed_s: float = 0.0

    @property
    def failed(self) -> List[SourceOutcome]:
        return [o for o in self.outcomes if o.status != "success"]
