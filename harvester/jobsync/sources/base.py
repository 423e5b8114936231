"""Pluggable job source framework.

Each source implements `JobSource` and returns `RawRecord` instances.
Sources are configured in `config/sources.yml`:

example:
  sources:
    - name: swissdevjobs
      enabled: true
      module: harvester.jobsync.sources.virtualized_source
      class: VirtualizedListSource
      gate: keyword
      options:
        url: https://swissdevjobs.ch/
        item_selector: .card

Runtime loader imports the module, instantiates the class with its options, and calls
`fetch()` returning a list of `RawRecord` objects.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol, runtime_checkable
from pathlib import Path
import importlib
import logging
import yaml

from ..classifier import AllowAllGate, ClassifierGate, KeywordGate
from ..models import RawRecord

logger = logging.getLogger("sources")

GATES = {
    'keyword': KeywordGate,
    'none': AllowAllGate,
}


@runtime_checkable
class JobSource(Protocol):
    name: str
    def fetch(self) -> List[RawRecord]:  # pragma: no cover - interface definition
        ...


@dataclass
class LoadedSource:
    name: str
    instance: JobSource
    gate: ClassifierGate = field(default_factory=KeywordGate)


def load_sources(config: List[Dict[str, Any]]) -> List[LoadedSource]:
    loaded: List[LoadedSource] = []
    # Sort entries by name for deterministic ordering
    config_sorted = sorted(config, key=lambda e: e.get("name", ""))
    for entry in config_sorted:
        if not entry.get("enabled", True):
            continue
        mod_name = entry["module"]
        cls_name = entry["class"]
        options = entry.get("options", {}) or {}
        gate_name = entry.get("gate", "keyword")
        try:
            mod = importlib.import_module(mod_name)
            cls = getattr(mod, cls_name)
            inst: JobSource = cls(name=entry["name"], **options)
            gate = GATES[gate_name]()
            loaded.append(LoadedSource(name=entry["name"], instance=inst, gate=gate))
            logger.info(f"Loaded source {entry['name']} ({mod_name}.{cls_name}, gate={gate_name})")
        except (ImportError, AttributeError, TypeError, KeyError) as e:
            logger.warning(f"Failed loading source {entry.get('name')} - {e}")
    return loaded


def load_sources_file(path: Path) -> List[LoadedSource]:
    cfg = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    return load_sources(cfg.get("sources", []))


def dedupe_records(records: Iterable[RawRecord], source_name: str) -> Dict[str, RawRecord]:
    """Key records by canonical key (first occurrence wins) and stamp the source name."""
    by_key: Dict[str, RawRecord] = {}
    for rec in records:
        if not rec.source_name:
            rec = rec.model_copy(update={'source_name': source_name})
        by_key.setdefault(rec.key, rec)
    return by_key
