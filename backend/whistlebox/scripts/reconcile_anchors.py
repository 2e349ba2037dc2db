"""
Retry ledger anchoring for complaints stored without an anchor reference.

Usage:
    python -m whistlebox.scripts.reconcile_anchors
    python -m whistlebox.scripts.reconcile_anchors --limit 200
"""

import argparse
import asyncio

import structlog

from whistlebox.core.config import get_settings
from whistlebox.core.logging import setup_logging
from whistlebox.db.session import build_engine, init_models
from whistlebox.main import build_complaint_service

logger = structlog.get_logger()


async def main(limit: int) -> int:
    settings = get_settings()
    setup_logging(settings)

    engine = build_engine(settings.DATABASE_URL)
    try:
        await init_models(engine)
        service = build_complaint_service(settings, engine)
        report = await service.reconcile_anchors(limit=limit)
    finally:
        await engine.dispose()

    print(f"Attempted: {report.attempted}  Anchored: {report.anchored}  Still pending: {report.still_pending}")
    return 0 if report.still_pending == 0 else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--limit", type=int, default=50)
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.limit)))
