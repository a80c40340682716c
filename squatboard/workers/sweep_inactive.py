"""Remove users idle longer than the inactivity threshold."""
import argparse
import logging
from datetime import datetime, timezone
from typing import Optional

from squatboard.core.config import settings
from squatboard.features.store.base import LedgerStore, get_store
from squatboard.features.users.service import sweep_inactive

logger = logging.getLogger("squatboard.workers.sweep")


def run_sweep(
    *,
    idle_days: Optional[int] = None,
    dry_run: bool = False,
    store: Optional[LedgerStore] = None,
    now: Optional[datetime] = None,
) -> dict:
    days = idle_days if idle_days is not None else settings.INACTIVE_AFTER_DAYS
    moment = now or datetime.now(timezone.utc)
    removed = sweep_inactive(store or get_store(), now=moment, idle_days=days, dry_run=dry_run)

    logger.info(
        "[sweep] inactive users",
        extra={"idle_days": days, "dry_run": dry_run, "removed": len(removed)},
    )
    return {"idle_days": days, "dry_run": dry_run, "removed": removed}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Remove users with no activity for N days.")
    parser.add_argument("--idle-days", type=int, default=None, help="Inactivity threshold in days.")
    parser.add_argument("--dry-run", action="store_true", help="List the users without removing them.")
    args = parser.parse_args(argv)

    report = run_sweep(idle_days=args.idle_days, dry_run=args.dry_run)
    print(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
