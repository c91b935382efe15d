"""Celery task definitions package."""

from app.tasks import events  # noqa: F401
from app.tasks import points  # noqa: F401

__all__ = ["events", "points"]
