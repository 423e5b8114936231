"""Run one harvest cycle: every configured source -> collect -> gate -> reconcile.

Usage:
  python -m harvester.scripts.run_sync
  python -m harvester.scripts.run_sync --source arbeitnow --debug
  python -m harvester.scripts.run_sync --config harvester/config/sources.yml --headed --no-strict

Exit code is 0 whenever the run completes, even if individual sources failed
(failures are in the log, the events file and the run history).
"""
from __future__ import annotations
from dataclasses import replace
from pathlib import Path
import argparse
import logging
import sys

from harvester.jobsync.db import JobCatalogDB
from harvester.jobsync.logging_config import setup_logging, log_event
from harvester.jobsync.orchestrator import Orchestrator
from harvester.jobsync.settings import CONFIG_DIR, SETTINGS
from harvester.jobsync.sources.base import load_sources_file


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Harvest job sources into the catalog")
    ap.add_argument('--config', default=str(CONFIG_DIR / 'sources.yml'), help='Path to sources.yml')
    ap.add_argument('--db', default=None, help='Catalog SQLite path (default from settings)')
    ap.add_argument('--source', action='append', dest='sources', help='Only run this source (repeatable)')
    ap.add_argument('--headless', dest='headless', action='store_true', default=None, help='Run browsers headless')
    ap.add_argument('--headed', dest='headless', action='store_false', help='Show browser windows')
    ap.add_argument('--strict', dest='strict', action='store_true', default=None, help='Stop scans on stagnation')
    ap.add_argument('--no-strict', dest='strict', action='store_false', help='Only stop scans at the end or the attempt cap')
    ap.add_argument('--max-workers', type=int, default=None, help='Concurrent source tasks')
    ap.add_argument('--debug', action='store_true')
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)
    logger = logging.getLogger('run_sync')

    overrides = {}
    if args.db:
        overrides['db_path'] = Path(args.db)
    if args.headless is not None:
        overrides['headless'] = args.headless
    if args.strict is not None:
        overrides['strict_collect'] = args.strict
    if args.max_workers:
        overrides['max_workers'] = args.max_workers
    settings = replace(SETTINGS, **overrides) if overrides else SETTINGS

    cfg_path = Path(args.config)
    if not cfg_path.exists():
        logger.error(f"Sources config not found: {cfg_path}")
        return 2
    sources = load_sources_file(cfg_path)
    for s in sources:
        # browser sources pick up CLI overrides
        if hasattr(s.instance, 'settings'):
            s.instance.settings = settings
    if not sources:
        logger.error("No enabled sources configured")
        return 2

    store = JobCatalogDB(settings.db_path)
    report = Orchestrator(store, sources, settings=settings).run_all(args.sources)
    if report.failed:
        logger.warning(f"{len(report.failed)} source(s) failed: {', '.join(o.source_name for o in report.failed)}")
    log_event('cli_exit', failed=len(report.failed))
    return 0


if __name__ == '__main__':
    sys.exit(main())
