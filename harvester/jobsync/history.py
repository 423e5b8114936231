"""Run history logging utilities.

Writes each orchestrator run summary as one JSON line (JSONL) for easy append
and later analysis. Path comes from settings (HARVESTER_RUN_HISTORY).
"""
from __future__ import annotations
from pathlib import Path
from datetime import datetime, timezone
import json
import logging
from typing import Dict, Any, List

logger = logging.getLogger(__name__)


def append_history(summary: Dict[str, Any], history_path: Path):
    history_path.parent.mkdir(parents=True, exist_ok=True)
    rec = dict(summary)
    rec['timestamp_utc'] = datetime.now(timezone.utc).isoformat()
    try:
        with history_path.open('a', encoding='utf-8') as f:
            f.write(json.dumps(rec, ensure_ascii=False, default=str) + '\n')
    except OSError:
        # Non-fatal; the run itself already completed
        logger.warning(f"Could not append run history to {history_path}", exc_info=True)


def read_history(history_path: Path, limit: int = 20) -> List[Dict[str, Any]]:
    if not history_path.exists():
        return []
    lines = history_path.read_text(encoding='utf-8').splitlines()
    out = []
    for line in lines[-limit:]:
        line = line.strip()
        if not line:
            continue
        try:
            out.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return out

__all__ = ['append_history', 'read_history']
