from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.core.config import settings


class _NoOpMetric:
    def labels(self, *args: Any, **kwargs: Any) -> "_NoOpMetric":
        return self

    def observe(self, *_: Any, **__: Any) -> None:
        return None

    def inc(self, *_: Any, **__: Any) -> None:
        return None


def _metric_or_noop(factory: Any, *args: Any, **kwargs: Any) -> Any:
    if not settings.METRICS_ENABLED:
        return _NoOpMetric()
    return factory(*args, **kwargs)


REQUEST_LATENCY = _metric_or_noop(
    Histogram,
    f"{settings.METRICS_NAMESPACE}_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path", "status_code"],
    buckets=settings.METRICS_LATENCY_BUCKETS,
)

REQUEST_COUNT = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_http_requests_total",
    "Total HTTP requests processed.",
    ["method", "path", "status_code"],
)

REQUEST_ERRORS = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_http_errors_total",
    "Total HTTP requests resulting in 4xx/5xx.",
    ["method", "path", "status_code"],
)

POINTS_EARNED = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_points_earned_total",
    "Loyalty points credited, partitioned by ledger entry type.",
    ["entry_type"],
)

POINTS_REDEEMED = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_points_redeemed_total",
    "Loyalty points redeemed by members.",
)

SPIN_OUTCOMES = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_spin_outcomes_total",
    "Reward wheel draws partitioned by reward type.",
    ["reward_type"],
)

SPIN_REJECTIONS = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_spin_rejections_total",
    "Spin requests rejected by the eligibility gate.",
    ["rule"],
)

BADGES_AWARDED = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_badges_awarded_total",
    "Badges awarded to members.",
    ["badge_id"],
)


def normalize_path(request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        return path
    return request.url.path


def record_request_metrics(request, status_code: int, elapsed: float) -> None:
    method = request.method
    path = normalize_path(request)
    labels = (method, path, str(status_code))
    REQUEST_COUNT.labels(*labels).inc()
    REQUEST_LATENCY.labels(*labels).observe(elapsed)
    if status_code >= 400:
        REQUEST_ERRORS.labels(*labels).inc()


def record_points_earned(entry_type: str, amount: int) -> None:
    if amount > 0:
        POINTS_EARNED.labels(entry_type=entry_type).inc(amount)


def record_points_redeemed(amount: int) -> None:
    POINTS_REDEEMED.inc(amount)


def record_spin_outcome(reward_type: str) -> None:
    SPIN_OUTCOMES.labels(reward_type=reward_type).inc()


def record_spin_rejection(rule: str) -> None:
    SPIN_REJECTIONS.labels(rule=rule).inc()


def record_badge_awarded(badge_id: str) -> None:
    BADGES_AWARDED.labels(badge_id=badge_id).inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
