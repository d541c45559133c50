"""Self-monitoring counters of the metrics daemon."""

from __future__ import annotations

from kubesd import telemetry

SUCCESSFUL_SCRAPES = telemetry.LabeledCounter(
    "successfull_scrapes_total",
    "Number of successfull scrapes of metrics from the endpoint",
    ["source"],
)
FAILED_SCRAPES = telemetry.LabeledCounter(
    "failed_scrapes_total",
    "Number of failed scrapes of metrics from the endpoint",
    ["source"],
)
TIMESERIES_PUSHED = telemetry.Counter(
    "timeseries_pushed_total",
    "Number of timeseries successfully pushed to the Stackdriver",
)
TIMESERIES_DROPPED = telemetry.Counter(
    "timeseries_dropped_total",
    "Number of timeseries dropped during a push to the Stackdriver",
)
METRIC_INGESTION_LATENCY = telemetry.Histogram(
    "metric_ingestion_latency_seconds",
    "Time passed from the moment, when metric was scraped from the monitored "
    "component till it was pushed to the Stackdriver",
    buckets=telemetry.exponential_buckets(1.0, 1.5, 12),
)

telemetry.REGISTRY.register(
    SUCCESSFUL_SCRAPES,
    FAILED_SCRAPES,
    TIMESERIES_PUSHED,
    TIMESERIES_DROPPED,
    METRIC_INGESTION_LATENCY,
)


def observe_successful_scrape(source: str) -> None:
    """Count a successful scrape of ``source``."""
    SUCCESSFUL_SCRAPES.labels(source).inc()


def observe_failed_scrape(source: str) -> None:
    """Count a failed scrape of ``source``."""
    FAILED_SCRAPES.labels(source).inc()


def observe_successful_request(batch_size: int) -> None:
    """Count time series that were pushed."""
    TIMESERIES_PUSHED.add(batch_size)


def observe_failed_request(batch_size: int) -> None:
    """Count time series that were dropped."""
    TIMESERIES_DROPPED.add(batch_size)


def observe_ingestion_latency(num_timeseries: int, latency: float) -> None:
    """Record ``latency`` seconds once for each of ``num_timeseries`` series."""
    for _ in range(num_timeseries):
        METRIC_INGESTION_LATENCY.observe(latency)