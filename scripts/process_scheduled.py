#!/usr/bin/env python3
"""Deliver due scheduled notifications.

Usage:
    # One pass, suitable for cron:
    python3 scripts/process_scheduled.py

    # Keep running, one pass every N seconds:
    python3 scripts/process_scheduled.py --loop --interval 300

Uses the same environment configuration as the API server
(``SHOPNOTIFY_DB_DATABASE_URL``, ``SHOPNOTIFY_NOTIFICATION_TRANSPORT`` and
the SMSing credentials). Several copies may run at once; each due entry is
delivered by exactly one of them.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure the project source is importable when running the script directly.
_project_root = Path(__file__).resolve().parent.parent
_src = _project_root / "src"
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from shopnotify.core.config import Settings
from shopnotify.web.app import create_app


async def run(loop: bool, interval: float | None) -> int:
    settings = Settings()
    app = create_app(settings=settings)
    scheduler = app.state.scheduler
    try:
        if loop:
            await scheduler.run_forever(interval or settings.scheduler.interval_seconds)
            return 0
        report = await scheduler.process_due()
        print(
            f"due={report.due} sent={report.sent} cancelled={report.cancelled} "
            f"retried={report.retried} failed={report.failed} skipped={report.skipped}"
        )
        return 0
    finally:
        await app.state.transport.close()
        db_manager = getattr(app.state, "db_manager", None)
        if db_manager is not None:
            await db_manager.close()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--loop", action="store_true", help="keep processing until interrupted")
    parser.add_argument("--interval", type=float, default=None, help="seconds between passes")
    args = parser.parse_args()
    try:
        return asyncio.run(run(args.loop, args.interval))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
