import argparse
import sys
from pathlib import Path

from harvester.jobsync.db import JobCatalogDB
from harvester.jobsync.history import read_history
from harvester.jobsync.settings import SETTINGS


def _db(args) -> JobCatalogDB:
    return JobCatalogDB(Path(args.db) if args.db else None)


def cmd_list(args):
    db = _db(args)
    jobs = db.fetch_by_source(args.source) if args.source else db.fetch_all()
    for j in jobs:
        if j.is_active == args.inactive:
            continue
        tags = f" [{', '.join(j.tags)}]" if j.tags and args.show_tags else ""
        print(f"{j.id}\t{'active' if j.is_active else 'inactive'}\t{j.updated_at:%Y-%m-%d}\t{j.company or '-'} - {j.title}\t{j.detail_url}{tags}")


def cmd_stats(args):
    stats = _db(args).stats()
    print("Catalog:")
    print(f"  total: {stats.total}")
    print(f"  active: {stats.active}")
    print(f"  inactive: {stats.inactive}")
    for name, counts in stats.by_source.items():
        print(f"  {name}: total={counts['total']} active={counts['active']} inactive={counts['inactive']}")


def cmd_history(args):
    for rec in read_history(SETTINGS.run_history_path, limit=args.limit):
        failed = rec.get('failed_sources') or []
        print(f"{rec.get('timestamp_utc')}\telapsed={rec.get('elapsed_s')}s\tfailed={','.join(failed) or '-'}")


def main(argv=None):
    ap = argparse.ArgumentParser("catalog cli")
    ap.add_argument('--db', default=None, help='Catalog SQLite path')
    sub = ap.add_subparsers(dest='cmd', required=True)

    lp = sub.add_parser('list')
    lp.add_argument('--source', help='Only jobs from this source')
    lp.add_argument('--inactive', action='store_true', help='List inactive (stale) jobs instead of active ones')
    lp.add_argument('--show-tags', action='store_true')
    lp.set_defaults(func=cmd_list)

    sp = sub.add_parser('stats')
    sp.set_defaults(func=cmd_stats)

    hp = sub.add_parser('history')
    hp.add_argument('--limit', type=int, default=20)
    hp.set_defaults(func=cmd_history)

    args = ap.parse_args(argv)
    args.func(args)
    return 0


if __name__ == '__main__':
    sys.exit(main())
