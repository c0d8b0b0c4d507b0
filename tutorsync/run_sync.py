from __future__ import annotations

import argparse
import logging
import uuid
from typing import Optional, Sequence

from tutorsync.config import load_config
from tutorsync.directory import REPOSITORIES, RepositoryDirectory, utc_now_iso
from tutorsync.errors import ConfigError
from tutorsync.logging_config import setup_logging
from tutorsync.notifier import ChangeEvent, ChangeNotifier
from tutorsync.reconcile import PassResult, Reconciler, reconcile_target
from tutorsync.scheduler import SyncScheduler
from tutorsync.services import build_services, import_repositories, load_repository_file
from tutorsync.sheets.adapter import SpreadsheetAdapter
from tutorsync.sheets.client import open_client
from tutorsync.store.firestore import FirestoreStore

logger = logging.getLogger("tutorsync.run_sync")


def _print_results(results: list[PassResult]) -> None:
    for r in results:
        print(r.summary())
    print(f"targets={len(results)} failed={len([r for r in results if r.error])} at={utc_now_iso()}")


def _log_change(event: ChangeEvent) -> None:
    logger.debug("data_updated module=%s action=%s id=%s", event.module, event.action, event.data.get("id"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tutorsync",
        description="Mirror inquiries, bookings and matches between Firestore and Google Sheets.",
    )
    parser.add_argument("--once", action="store_true", help="Run a single pass over all targets and exit.")
    parser.add_argument("--dry-run", action="store_true", help="Compute one pass without writing anything.")
    parser.add_argument("--interval", type=int, default=0, help="Seconds between passes (0 = from env, default 25).")
    parser.add_argument("--collection", default="", help="Only sync the target mirroring this collection.")
    parser.add_argument("--import-repos", default="", metavar="PATH", help="Register repository entries from a YAML file first.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    run_id = str(uuid.uuid4())

    try:
        cfg = load_config()
        setup_logging(cfg.log_level, cfg.log_file)

        store = FirestoreStore.from_config(cfg)
        sheets = SpreadsheetAdapter(open_client(cfg))
    except ConfigError as e:
        print(f"ERROR run_id={run_id} config err={e}")
        return 1

    notifier = ChangeNotifier()
    notifier.subscribe(_log_change)
    directory = RepositoryDirectory(store)

    if args.import_repos:
        try:
            if args.dry_run:
                entries = load_repository_file(args.import_repos)
                print(f"[DRY-RUN] would import up to {len(entries)} repositories")
            else:
                services = build_services(store, notifier)
                added = import_repositories(services[REPOSITORIES], args.import_repos)
                print(f"imported_repositories={added}")
        except ConfigError as e:
            print(f"ERROR run_id={run_id} config err={e}")
            return 1

    reconciler = Reconciler(store, sheets, directory, notifier, dry_run=args.dry_run)

    if args.once or args.dry_run or args.collection:
        if args.collection:
            targets = [t for t in directory.targets() if t.collection == args.collection]
            if not targets:
                print(f"ERROR run_id={run_id} no mirror target for collection={args.collection}")
                return 1
            results = [reconcile_target(reconciler, t) for t in targets]
        else:
            results = reconciler.run_all()

        _print_results(results)
        print(f"run_id={run_id} dry_run={args.dry_run}")
        return 1 if any(r.error for r in results) else 0

    scheduler = SyncScheduler(reconciler, interval=args.interval or cfg.sync_interval, on_results=_print_results)
    scheduler.start()
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
