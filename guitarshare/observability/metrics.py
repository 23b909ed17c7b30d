# guitarshare/observability/metrics.py
# prometheus counters for the share pipeline

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

PUBLIC_VIEWS = Counter(
    "share_public_views_total",
    "Public share requests by outcome",
    labelnames=("outcome",),
)
IMAGES_PROCESSED = Counter(
    "share_images_processed_total",
    "Share image derivatives by result",
    labelnames=("result",),
)
ANALYTICS_FAILURES = Counter(
    "share_analytics_failures_total",
    "View analytics writes that failed",
)
DERIVATIVE_DELETE_FAILURES = Counter(
    "share_derivative_delete_failures_total",
    "Derivative blob cleanups that failed",
)

router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    """// expose /metrics"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
