"""Periodic job: report stale shifts and expire overdue out-of-range requests.

Meant for cron or any external scheduler. The stale pass is read-only;
resolution stays a manager decision.
"""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.timeclock.timeclock.container import build_container
from src.timeclock.timeclock.core.logging import configure_logging


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        policy_defaults=getattr(settings, "POLICY_DEFAULTS", None),
        lock_timeout_seconds=int(getattr(settings, "LOCK_TIMEOUT_SECONDS", 10)),
    )

    stale = container.stale_service.sweep()
    expired = container.request_service.expire_overdue()
    print(
        f"OK: {sum(len(v) for v in stale.values())} stale shift(s) in {len(stale)} organization(s); "
        f"{len(expired)} request(s) expired"
    )


if __name__ == "__main__":
    main()
