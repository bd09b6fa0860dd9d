"""Request logging and metrics for the API and background sync."""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections import defaultdict
from contextvars import ContextVar
from threading import Lock
from typing import Iterable, Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from fitsquad.core.config import get_settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
logger = logging.getLogger(__name__)

DEFAULT_BUCKETS_MS = (50, 100, 250, 500, 1000, 2500, 5000, 10000)


def get_request_id() -> str | None:
    """Return the current request id if set by middleware."""
    return request_id_ctx.get()


class MetricsBackend(Protocol):
    """Metrics backend interface."""

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        ...

    def observe_sync_job(
        self,
        job: str,
        status: str,
        duration_ms: float,
        items_fetched: int | None = None,
        items_created: int | None = None,
        items_skipped: int | None = None,
    ) -> None:
        ...

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        ...

    def observe_badge_unlock(self, badge_type: str) -> None:
        ...

    def observe_event_link(self, linked: bool) -> None:
        ...

    def render_prometheus(self) -> str:
        ...


class _HistogramSeries:
    """Cumulative-bucket histogram keyed by a label tuple."""

    def __init__(self, name: str, help_text: str, label_names: tuple[str, ...], buckets_ms):
        self.name = name
        self.help_text = help_text
        self.label_names = label_names
        self.buckets_ms = list(buckets_ms)
        self.sums: dict[tuple[str, ...], float] = defaultdict(float)
        self.counts: dict[tuple[str, ...], int] = defaultdict(int)
        self.buckets: dict[tuple[str, ...], dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def observe(self, labels: tuple[str, ...], value: float) -> None:
        self.sums[labels] += value
        self.counts[labels] += 1
        self.buckets[labels][self._bucket_for(value)] += 1

    def render(self) -> list[str]:
        lines = [
            f"# HELP {self.name} {self.help_text}",
            f"# TYPE {self.name} histogram",
        ]
        for labels, total in sorted(self.sums.items()):
            label_text = _format_labels(self.label_names, labels)
            prefix = f"{label_text}," if label_text else ""
            cumulative = 0
            for bound in self.buckets_ms:
                cumulative += self.buckets[labels].get(str(bound), 0)
                lines.append(f'{self.name}_bucket{{{prefix}le="{bound}"}} {cumulative}')
            cumulative += self.buckets[labels].get("+Inf", 0)
            lines.append(f'{self.name}_bucket{{{prefix}le="+Inf"}} {cumulative}')
            lines.append(f"{self.name}_sum{{{label_text}}} {total:.2f}")
            lines.append(f"{self.name}_count{{{label_text}}} {self.counts[labels]}")
        return lines

    def _bucket_for(self, duration_ms: float) -> str:
        for bound in self.buckets_ms:
            if duration_ms <= bound:
                return str(bound)
        return "+Inf"


def _format_labels(names: tuple[str, ...], values: tuple[str, ...]) -> str:
    return ",".join(f'{name}="{value}"' for name, value in zip(names, values))


def _render_counter(
    name: str,
    help_text: str,
    label_names: tuple[str, ...],
    values: dict[tuple[str, ...], int],
) -> list[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} counter"]
    for labels, count in sorted(values.items()):
        lines.append(f"{name}{{{_format_labels(label_names, labels)}}} {count}")
    return lines


class MetricsCollector:
    """In-process metrics collector with Prometheus text output."""

    def __init__(self, buckets_ms: Iterable[int] | None = None) -> None:
        buckets = list(buckets_ms or DEFAULT_BUCKETS_MS)
        self._lock = Lock()
        self._request_counts: dict[tuple[str, ...], int] = defaultdict(int)
        self._request_duration = _HistogramSeries(
            "http_request_duration_ms",
            "Request duration in milliseconds",
            ("method", "path"),
            buckets,
        )
        self._sync_counts: dict[tuple[str, ...], int] = defaultdict(int)
        self._sync_duration = _HistogramSeries(
            "sync_job_duration_ms",
            "Sync job duration in milliseconds",
            ("job", "status"),
            buckets,
        )
        self._sync_items: dict[tuple[str, ...], int] = defaultdict(int)
        self._external_counts: dict[tuple[str, ...], int] = defaultdict(int)
        self._external_duration = _HistogramSeries(
            "external_api_duration_ms",
            "External API duration in milliseconds",
            ("provider", "operation"),
            buckets,
        )
        self._badge_unlocks: dict[tuple[str, ...], int] = defaultdict(int)
        self._event_links: dict[tuple[str, ...], int] = defaultdict(int)

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        """Record a single request observation."""
        with self._lock:
            self._request_counts[(method, path, str(status_code))] += 1
            self._request_duration.observe((method, path), duration_ms)

    def observe_sync_job(
        self,
        job: str,
        status: str,
        duration_ms: float,
        items_fetched: int | None = None,
        items_created: int | None = None,
        items_skipped: int | None = None,
    ) -> None:
        """Record a sync job observation."""
        with self._lock:
            self._sync_counts[(job, status)] += 1
            self._sync_duration.observe((job, status), duration_ms)
            for item_type, count in (
                ("fetched", items_fetched),
                ("created", items_created),
                ("skipped", items_skipped),
            ):
                if count is not None:
                    self._sync_items[(job, item_type)] += count

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        """Record an external API call observation."""
        with self._lock:
            self._external_counts[(provider, operation, str(status_code))] += 1
            self._external_duration.observe((provider, operation), duration_ms)

    def observe_badge_unlock(self, badge_type: str) -> None:
        with self._lock:
            self._badge_unlocks[(badge_type,)] += 1

    def observe_event_link(self, linked: bool) -> None:
        with self._lock:
            self._event_links[("linked" if linked else "missed",)] += 1

    def render_prometheus(self) -> str:
        """Render metrics in Prometheus text format."""
        lines: list[str] = []
        with self._lock:
            lines += _render_counter(
                "http_requests_total",
                "Total HTTP requests",
                ("method", "path", "status"),
                self._request_counts,
            )
            lines += self._request_duration.render()
            lines += _render_counter(
                "sync_jobs_total", "Total sync jobs", ("job", "status"), self._sync_counts
            )
            lines += self._sync_duration.render()
            lines += _render_counter(
                "sync_items_total",
                "Items processed during sync",
                ("job", "type"),
                self._sync_items,
            )
            lines += _render_counter(
                "external_api_requests_total",
                "External API requests",
                ("provider", "operation", "status"),
                self._external_counts,
            )
            lines += self._external_duration.render()
            lines += _render_counter(
                "badge_unlocks_total",
                "Badges unlocked",
                ("badge_type",),
                self._badge_unlocks,
            )
            lines += _render_counter(
                "event_link_attempts_total",
                "Workout to event auto-link attempts",
                ("result",),
                self._event_links,
            )
        return "\n".join(lines) + "\n"


class PrometheusMetrics:
    """prometheus_client-based metrics backend with its own registry."""

    def __init__(self, buckets_ms: Iterable[int] | None = None) -> None:
        buckets = list(buckets_ms or DEFAULT_BUCKETS_MS)
        self._registry = CollectorRegistry()

        self._http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "Request duration in milliseconds",
            ["method", "path"],
            buckets=buckets,
            registry=self._registry,
        )
        self._sync_jobs_total = Counter(
            "sync_jobs_total",
            "Total sync jobs",
            ["job", "status"],
            registry=self._registry,
        )
        self._sync_job_duration_ms = Histogram(
            "sync_job_duration_ms",
            "Sync job duration in milliseconds",
            ["job", "status"],
            buckets=buckets,
            registry=self._registry,
        )
        self._sync_items_total = Counter(
            "sync_items_total",
            "Items processed during sync",
            ["job", "type"],
            registry=self._registry,
        )
        self._external_api_requests_total = Counter(
            "external_api_requests_total",
            "External API requests",
            ["provider", "operation", "status"],
            registry=self._registry,
        )
        self._external_api_duration_ms = Histogram(
            "external_api_duration_ms",
            "External API duration in milliseconds",
            ["provider", "operation"],
            buckets=buckets,
            registry=self._registry,
        )
        self._badge_unlocks_total = Counter(
            "badge_unlocks_total",
            "Badges unlocked",
            ["badge_type"],
            registry=self._registry,
        )
        self._event_link_attempts_total = Counter(
            "event_link_attempts_total",
            "Workout to event auto-link attempts",
            ["result"],
            registry=self._registry,
        )

    def observe_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        self._http_requests_total.labels(method, path, str(status_code)).inc()
        self._http_request_duration_ms.labels(method, path).observe(duration_ms)

    def observe_sync_job(
        self,
        job: str,
        status: str,
        duration_ms: float,
        items_fetched: int | None = None,
        items_created: int | None = None,
        items_skipped: int | None = None,
    ) -> None:
        self._sync_jobs_total.labels(job, status).inc()
        self._sync_job_duration_ms.labels(job, status).observe(duration_ms)
        for item_type, count in (
            ("fetched", items_fetched),
            ("created", items_created),
            ("skipped", items_skipped),
        ):
            if count is not None:
                self._sync_items_total.labels(job, item_type).inc(count)

    def observe_external_api(
        self,
        provider: str,
        operation: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        self._external_api_requests_total.labels(provider, operation, str(status_code)).inc()
        self._external_api_duration_ms.labels(provider, operation).observe(duration_ms)

    def observe_badge_unlock(self, badge_type: str) -> None:
        self._badge_unlocks_total.labels(badge_type).inc()

    def observe_event_link(self, linked: bool) -> None:
        self._event_link_attempts_total.labels("linked" if linked else "missed").inc()

    def render_prometheus(self) -> str:
        return generate_latest(self._registry).decode("utf-8")


_metrics_backend: MetricsBackend | None = None


def get_metrics_backend() -> MetricsBackend:
    """Return a cached metrics backend instance."""
    global _metrics_backend
    if _metrics_backend is None:
        _metrics_backend = build_metrics_backend(get_settings().metrics_backend)
    return _metrics_backend


def build_metrics_backend(backend: str) -> MetricsBackend:
    if backend == "prometheus":
        return PrometheusMetrics()
    if backend != "inmemory":
        logger.warning(f"Unknown metrics backend '{backend}', using in-memory metrics")
    return MetricsCollector()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Attach request_id, log request/response, and emit metrics."""

    def __init__(
        self,
        app: ASGIApp,
        metrics: MetricsBackend | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(app)
        self.metrics = metrics or get_metrics_backend()
        self.logger = logger or logging.getLogger("fitsquad.request")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = response.status_code if response else 500
            if response is not None:
                response.headers["X-Request-ID"] = request_id

            route_path = getattr(request.scope.get("route"), "path", None)
            # Unmatched paths share one label
            self.metrics.observe_request(
                request.method,
                route_path or "/__unknown__",
                status_code,
                duration_ms,
            )

            # Query strings are left out; OAuth callbacks carry codes there
            self.logger.info(
                json.dumps(
                    {
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "route": route_path,
                        "status_code": status_code,
                        "elapsed_ms": round(duration_ms, 2),
                        "friend_id": request.headers.get("X-Friend-Id"),
                    }
                )
            )
            request_id_ctx.reset(token)
