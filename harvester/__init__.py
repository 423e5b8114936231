"""Harvester package public API."""
from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("harvester")
except _metadata.PackageNotFoundError:  # not installed
    __version__ = "0.1.0"

from .jobsync.db import JobCatalogDB  # re-export
from .jobsync.models import RawRecord, PersistedJobRecord  # re-export

__all__ = ["__version__", "JobCatalogDB", "RawRecord", "PersistedJobRecord"]
