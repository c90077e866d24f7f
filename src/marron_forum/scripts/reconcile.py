# src/marron_forum/scripts/reconcile.py
"""Recompute every engagement counter from the reply and like tables."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from marron_forum.core.errors import TransientStoreError
from marron_forum.core.logging import configure_logging
from marron_forum.core.settings import settings
from marron_forum.db.guard import retry_transient
from marron_forum.db.session import Database
from marron_forum.services.engagement import EngagementService, ReconciliationReport

logger = logging.getLogger(__name__)


def reconcile(database: Database, *, dry_run: bool = False) -> ReconciliationReport:
    """Run one reconciliation pass in its own transaction."""
    with database.session() as db:
        report = EngagementService(db).reconcile_counters()
        if dry_run:
            db.rollback()
        else:
            db.commit()
    return report


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Repair denormalized like and reply counters")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report drifted counters without writing the repairs.",
    )
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    database = Database(args.url or settings.effective_database_url, settings)
    try:
        report = retry_transient(
            lambda: reconcile(database, dry_run=args.dry_run),
            attempts=settings.db_retry_attempts,
        )
    except TransientStoreError as exc:
        print(f"[reconcile] ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        database.dispose()

    verb = "found" if args.dry_run else "repaired"
    print(
        f"[reconcile] {verb} {report.total} counters "
        f"(post likes {report.post_likes}, post replies {report.post_replies}, "
        f"reply likes {report.reply_likes}, reply replies {report.reply_replies})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
