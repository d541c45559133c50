"""Settings of the logging sink."""

from __future__ import annotations

from dataclasses import dataclass

from kubesd import gce

DEFAULT_FLUSH_DELAY = 5.0
DEFAULT_MAX_BUFFER_SIZE = 100
DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_ENDPOINT = ""
EVENTS_LOG_NAME = "events"


@dataclass
class SinkConfig:
    """Batching and destination settings; ``flush_delay`` is in seconds."""

    flush_delay: float = DEFAULT_FLUSH_DELAY
    max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    log_name: str = ""
    endpoint: str = DEFAULT_ENDPOINT


def new_gce_sink_config() -> SinkConfig:
    """Return the default sink settings for a GCE instance."""
    if not gce.on_gce():
        raise gce.MetadataError(
            "not running on GCE, which is not supported for Stackdriver sink"
        )
    try:
        project = gce.project_id()
    except gce.MetadataError as exc:
        raise gce.MetadataError(f"failed to get project id: {exc}") from exc
    return SinkConfig(log_name=f"projects/{project}/logs/{EVENTS_LOG_NAME}")