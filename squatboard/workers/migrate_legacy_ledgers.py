"""Upgrade users stored in the legacy Redis layout to the current one."""
import argparse
import logging
from typing import Optional

from squatboard.core.config import settings
from squatboard.core.errors import UnknownUserError
from squatboard.features.store.redis_store import RedisLedgerStore

logger = logging.getLogger("squatboard.workers.migrate")


def migrate_ledgers(*, dry_run: bool = True, store: Optional[RedisLedgerStore] = None) -> dict:
    """
    Walk every known user id and rewrite legacy records.

    Dry runs decode everything and report what would change without writing.
    """
    store = store or RedisLedgerStore.from_url(settings.REDIS_URL)
    report = {"dry_run": dry_run, "users": 0, "legacy": 0, "migrated": 0, "days": 0, "skipped": []}

    for user_id in store.known_user_ids():
        report["users"] += 1
        try:
            result = store.migrate_user(user_id, dry_run=dry_run)
        except UnknownUserError:
            logger.warning("[migrate] %s is indexed but has no record", user_id)
            continue
        if not result.legacy:
            continue
        report["legacy"] += 1
        report["days"] += result.days
        if result.migrated:
            report["migrated"] += 1
        for member in result.skipped:
            report["skipped"].append({"userId": user_id, "member": member})

    logger.info(
        "[migrate] legacy ledgers",
        extra={k: v for k, v in report.items() if k != "skipped"},
    )
    return report


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Migrate legacy completion ledgers in Redis.")
    parser.add_argument("--live", dest="dry_run", action="store_false", help="Write the upgraded records.")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Report without writes.")
    parser.set_defaults(dry_run=True)
    args = parser.parse_args(argv)

    report = migrate_ledgers(dry_run=args.dry_run)
    print(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
