"""Prometheus metrics instrumentation for the indexing service.

Tracks:
- Documents written per resource and bulk-write failures
- Malformed events dropped by consolidation and conversion
- Reindex requests per resource, policy and outcome
- Index lifecycle operations and streaming jobs
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, Info, generate_latest

SERVICE_INFO = Info("catalog_search_service", "Catalog search indexer information")

# ==================== Indexing Metrics ====================

INDEXED_DOCUMENTS = Counter(
    "catalog_search_indexed_documents_total",
    "Search documents written",
    ["resource", "action"],
)

BULK_WRITE_FAILURES = Counter(
    "catalog_search_bulk_write_failures_total",
    "Bulk writes rejected by the search engine",
    ["resource"],
)

BULK_WRITE_LATENCY = Histogram(
    "catalog_search_bulk_write_latency_seconds",
    "Bulk write latency in seconds",
    ["resource"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

EVENT_FAILURES = Counter(
    "catalog_search_event_failures_total",
    "Events dropped while consolidating or converting",
    ["stage"],
)

# ==================== Reindex and Index Lifecycle ====================

REINDEX_REQUESTS = Counter(
    "catalog_search_reindex_requests_total",
    "Reindex requests handled",
    ["resource", "policy", "status"],
)

INDEX_OPERATIONS = Counter(
    "catalog_search_index_operations_total",
    "Index lifecycle operations",
    ["operation", "status"],
)

# ==================== Jobs ====================

STREAM_JOBS = Counter(
    "catalog_search_stream_jobs_total",
    "Streaming resource-id jobs by terminal status",
    ["status"],
)


def record_indexed_documents(resource: str, action: str, count: int = 1) -> None:
    INDEXED_DOCUMENTS.labels(resource=resource, action=action).inc(count)


def record_bulk_write_failure(resource: str) -> None:
    BULK_WRITE_FAILURES.labels(resource=resource).inc()


def record_event_failures(stage: str, count: int) -> None:
    """Record events dropped by a pipeline stage.

    Args:
            stage: Pipeline stage (consolidate, convert).
            count: Number of dropped events.
    """
    if count:
        EVENT_FAILURES.labels(stage=stage).inc(count)


def record_reindex_request(resource: str, policy: str, status: str) -> None:
    REINDEX_REQUESTS.labels(resource=resource, policy=policy, status=status).inc()


def record_index_operation(operation: str, success: bool) -> None:
    """Record an index lifecycle operation.

    Args:
            operation: Operation name (create, drop, update_mappings, update_settings).
            success: Whether the engine accepted it.
    """
    status = "success" if success else "error"
    INDEX_OPERATIONS.labels(operation=operation, status=status).inc()


def record_stream_job(status: str) -> None:
    STREAM_JOBS.labels(status=status).inc()


# ==================== Metrics Endpoint ====================


def get_metrics() -> bytes:
    """Get Prometheus metrics as bytes for /metrics endpoint."""
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
