# storefront/observability/metrics.py
from __future__ import annotations

from typing import Protocol

from fastapi import APIRouter
from starlette.responses import Response

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter(tags=["observability"])

pricing_events_counter = Counter(
    "storefront_pricing_events_total",
    "Pricing engine events as seen by callers",
    ["event", "outcome"],  # e.g. bulk_commit_row|ok, validate|invalid
)

bulk_rows_hist = Histogram(
    "storefront_bulk_rows",
    "Number of rows per bulk repricing preview",
    buckets=(1, 5, 10, 25, 50, 100, 250, 1000),
)


class StatsCollector(Protocol):
    """
    Injected into callers of the pricing core (bulk repricer, API layer).
    The core itself never records anything.
    """

    def record(self, event: str, outcome: str) -> None: ...

    def observe_rows(self, count: int) -> None: ...


class NullStats:
    def record(self, event: str, outcome: str) -> None:
        return None

    def observe_rows(self, count: int) -> None:
        return None


class PrometheusStats:
    def record(self, event: str, outcome: str) -> None:
        pricing_events_counter.labels(event=event, outcome=outcome).inc()

    def observe_rows(self, count: int) -> None:
        bulk_rows_hist.observe(count)


class MemoryStats:
    """Counts events in a dict; handy for tests and local debugging."""

    def __init__(self) -> None:
        self.counts: dict[tuple[str, str], int] = {}
        self.row_counts: list[int] = []

    def record(self, event: str, outcome: str) -> None:
        key = (event, outcome)
        self.counts[key] = self.counts.get(key, 0) + 1

    def observe_rows(self, count: int) -> None:
        self.row_counts.append(count)


@router.get("/metrics", include_in_schema=True)
def metrics() -> Response:
    # Prometheus expects text/plain; version=0.0.4
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
