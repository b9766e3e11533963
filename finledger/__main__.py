"""
Scheduled sync entry point.

Usage (from cron or any scheduler):
    python -m finledger <sync-key>

The key may also be supplied through FINLEDGER_TRIGGER_KEY. The report
is printed as JSON. Exit status: 0 when every credential synced, 1 when
any credential failed or was partial, 2 when the sync could not start.
"""

import asyncio
import os
import sys

import structlog

from finledger.orchestrator import TriggerAuthError, create_app_components
from finledger.sync import AccountLookupError


logger = structlog.get_logger(__name__)


async def _run(key: str) -> int:
    components = create_app_components()
    try:
        report = await components.sync_trigger.run_scheduled(key)
    except (TriggerAuthError, AccountLookupError) as e:
        logger.error("scheduled_sync_not_started", error_type=type(e).__name__, error=str(e))
        return 2

    print(report.model_dump_json(indent=2))
    return 0 if report.all_succeeded else 1


def main(argv: list[str]) -> int:
    key = argv[1] if len(argv) > 1 else os.environ.get("FINLEDGER_TRIGGER_KEY", "")
    return asyncio.run(_run(key))


def run() -> None:
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    run()
