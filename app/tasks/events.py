from __future__ import annotations

from app.core.celery_app import celery_app
from app.core.logging import get_logger

logger = get_logger("app.events")


@celery_app.task(name="events.loyalty", ignore_result=True)
def handle_loyalty_event(event_name: str, payload: dict) -> None:
    """Dispatch loyalty events to downstream adapters; for now they are only logged."""
    logger.info("loyalty event", extra={"event": event_name, "payload": payload})
