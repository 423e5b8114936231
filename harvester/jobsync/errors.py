"""Error taxonomy for collection and reconciliation.

Recovery happens at the smallest scope that owns the failure:
item (ExtractionError), record (StoreWriteError), source (SourceFatalError).
ContainerNotFound / StagnationTimeout / AttemptCapReached are expected
terminal conditions of the collector, not failures.
"""
from __future__ import annotations


class HarvesterError(Exception):
    pass


class ExtractionError(HarvesterError):
    """One rendered item could not be turned into a record."""


class ContainerNotFound(HarvesterError):
    """No virtualized scroll container; collector falls back to a single pass."""


class StagnationTimeout(HarvesterError):
    """No new unique item for N consecutive scroll attempts."""


class AttemptCapReached(HarvesterError):
    """Hard cap on scroll attempts reached."""


class StoreWriteError(HarvesterError):
    """A catalog read or write for one record failed."""


class SourceFatalError(HarvesterError):
    """The render surface became unusable; the source run ends early."""


__all__ = [
    'HarvesterError',
    'ExtractionError',
    'ContainerNotFound',
    'StagnationTimeout',
    'AttemptCapReached',
    'StoreWriteError',
    'SourceFatalError',
]
