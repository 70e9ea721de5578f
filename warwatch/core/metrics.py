from prometheus_client import Counter, Histogram

# Prometheus metrics
REQUEST_LATENCY = Histogram(
    "warwatch_request_latency_seconds",
    "Request latency in seconds",
    ["method", "path", "status"],
)
REQUEST_COUNT = Counter(
    "warwatch_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
INGESTED_RECORDS = Counter(
    "warwatch_ingested_records_total",
    "Canonical records written by the ingestion pipeline",
    ["source", "kind"],
)
SOURCE_RUNS = Counter(
    "warwatch_source_runs_total",
    "Scheduled and push source invocations by outcome",
    ["source", "outcome"],
)
BROADCAST_DROPS = Counter(
    "warwatch_broadcast_dropped_total",
    "Events dropped for a subscriber whose queue was full",
)
