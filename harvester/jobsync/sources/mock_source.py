from __future__ import annotations
from typing import List

from ..errors import SourceFatalError
from ..models import RawRecord


class MockJobSource:
    """Generate synthetic records for exercising the ingestion pipeline without a network.

    Options:
      count: number of records to emit
      title: base title prefix
      url_prefix: detail urls are `<url_prefix>/<i>`
      fail: raise SourceFatalError instead of returning records
    """
    def __init__(self, name: str, count: int = 3, title: str = "Mock Software Engineer", url_prefix: str = "https://example.invalid/jobs", fail: bool = False):
        self.name = name
        self.count = count
        self.title = title
        self.url_prefix = url_prefix.rstrip('/')
        self.fail = fail

    def fetch(self) -> List[RawRecord]:
        if self.fail:
            raise SourceFatalError(f"{self.name}: simulated render surface crash")
        return [
            RawRecord(
                title=f"{self.title} {i}",
                detail_url=f"{self.url_prefix}/{i}",
                source_name=self.name,
                company="DemoCo",
                location="Remote",
                tags=["Python"],
            )
            for i in range(self.count)
        ]
