from __future__ import annotations

import asyncio

from app.core.celery_app import celery_app
from app.core.logging import get_logger
from app.db.session_async import run_in_transaction
from app.services import points_ledger

logger = get_logger(__name__)


async def _expire_points() -> int:
    try:
        return await run_in_transaction(points_ledger.expire_points)
    except Exception:
        logger.exception("points expiry sweep failed")
        raise


@celery_app.task(name="loyalty.expire_points")
def expire_points_task() -> int:
    """Sweep lapsed point credits and append their `expired` ledger entries."""
    return asyncio.run(_expire_points())
