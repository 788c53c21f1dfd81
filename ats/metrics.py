from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

nested_upsert_total = Counter(
    "ats_nested_upsert_total",
    "Complete create/update requests by parent entity and outcome",
    ["parent", "operation", "outcome"],
)

nested_upsert_duration_seconds = Histogram(
    "ats_nested_upsert_duration_seconds",
    "Complete create/update transaction duration in seconds",
    ["parent", "operation"],
)

nested_child_operations_total = Counter(
    "ats_nested_child_operations_total",
    "Child rows written by complete create/update requests",
    ["collection", "action"],
)

activity_write_failures_total = Counter(
    "ats_activity_write_failures_total",
    "User activity writes that failed and were skipped",
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        for attribute in ("path_format", "path"):
            value = getattr(route, attribute, None)
            if isinstance(value, str) and value:
                return _PATH_PARAM_RE.sub("{id}", value)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_nested_upsert(parent: str, operation: str, outcome: str, duration: float | None = None) -> None:
    nested_upsert_total.labels(parent=parent, operation=operation, outcome=outcome).inc()
    if duration is not None:
        nested_upsert_duration_seconds.labels(parent=parent, operation=operation).observe(duration)


def observe_child_operations(collection: str, created: int, updated: int, deleted: int) -> None:
    for action, count in (("create", created), ("update", updated), ("delete", deleted)):
        if count > 0:
            nested_child_operations_total.labels(collection=collection, action=action).inc(count)


def observe_activity_write_failure() -> None:
    activity_write_failures_total.inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
