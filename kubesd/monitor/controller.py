"""Node eviction metrics scraped from the kube-controller-manager."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import requests

from kubesd.gce import SourceConfig
from kubesd.monitor.poll import MetricsSource
from kubesd.monitor.timeseries import (
    CreateTimeSeriesRequest,
    Metric,
    MonitoredResource,
    Point,
    TimeInterval,
    TimeSeries,
    TypedValue,
    format_rfc3339,
)

EVICTIONS_METRIC = "node_collector_evictions_number"
START_TIME_METRIC = "process_start_time_seconds"
EVICTION_COUNT_TYPE = "container.googleapis.com/master/node_controller/node_eviction_count"

_NAME = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")


@dataclass
class ControllerMetrics:
    """Values parsed from the controller's metrics page."""

    create_time: int = 0
    node_evictions: int = 0


def _skip_labels(text: str) -> str:
    """Return what follows the label block that ``text`` starts with."""
    in_quote = False
    escaped = False
    for index, char in enumerate(text[1:], start=1):
        if in_quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_quote = False
        elif char == '"':
            in_quote = True
        elif char == "}":
            return text[index + 1 :]
    raise ValueError(f"unterminated label set in {text!r}")


def _parse_sample(line: str) -> tuple[str, float]:
    match = _NAME.match(line)
    if match is None:
        raise ValueError(f"invalid metric name in line {line!r}")
    rest = line[match.end() :].lstrip()
    if rest.startswith("{"):
        rest = _skip_labels(rest)
    fields = rest.split()
    if not fields or len(fields) > 2:
        raise ValueError(f"expected value after metric in line {line!r}")
    try:
        value = float(fields[0])
        if len(fields) == 2:
            int(fields[1])
    except ValueError:
        raise ValueError(f"invalid sample in line {line!r}") from None
    return match.group(), value


def _as_int(value: float, name: str) -> int:
    if not math.isfinite(value):
        raise ValueError(f"non-finite value for {name}")
    return int(value)


def parse_metrics(data: str | bytes) -> ControllerMetrics:
    """Parse Prometheus text-format metrics into :class:`ControllerMetrics`."""
    text = data.decode("utf-8") if isinstance(data, bytes) else data
    result = ControllerMetrics()
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            name, value = _parse_sample(line)
        except ValueError as exc:
            raise ValueError(f"Invalid decode: {exc}") from exc
        if name == EVICTIONS_METRIC:
            result.node_evictions = _as_int(value, name)
        elif name == START_TIME_METRIC:
            result.create_time = _as_int(value, name)
    return result


class ControllerClient:
    """Queries metrics from the controller process."""

    def __init__(
        self, host: str, port: int, session: Any = None, timeout: float = 10.0
    ) -> None:
        self.url = f"http://{host}:{port}/metrics"
        self._session = session if session is not None else requests.Session()
        self._timeout = timeout

    def get_metrics(self) -> ControllerMetrics:
        """Fetch and parse the latest metrics of the controller."""
        response = self._session.get(self.url, timeout=self._timeout)
        body = response.text
        if response.status_code == 404:
            raise requests.HTTPError(f"{self.url!r} not found", response=response)
        if response.status_code != 200:
            status = f"{response.status_code} {getattr(response, 'reason', '')}".strip()
            raise requests.HTTPError(
                f"request failed - {status!r}, response: {body!r}", response=response
            )
        return parse_metrics(body)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ControllerTranslator:
    """Turns controller metrics into time series."""

    def __init__(
        self,
        zone: str,
        project: str,
        cluster: str,
        instance_id: str,
        resolution: float,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.zone = zone
        self.project = project
        self.cluster = cluster
        self.instance_id = instance_id
        self.resolution = resolution
        self._clock = clock or _utc_now

    def translate(self, metrics: ControllerMetrics) -> CreateTimeSeriesRequest:
        return CreateTimeSeriesRequest([self._translate_eviction(metrics)])

    def _translate_eviction(self, metrics: ControllerMetrics) -> TimeSeries:
        resource_labels = {
            "project_id": self.project,
            "cluster_name": self.cluster,
            "zone": self.zone,
            "instance_id": self.instance_id,
            "namespace_id": "",
            "pod_id": "machine",
            "container_name": "",
        }
        created = datetime.fromtimestamp(metrics.create_time, timezone.utc)
        point = Point(
            interval=TimeInterval(
                start_time=format_rfc3339(created),
                end_time=format_rfc3339(self._clock()),
            ),
            value=TypedValue(int64_value=metrics.node_evictions),
        )
        return TimeSeries(
            metric=Metric(type=EVICTION_COUNT_TYPE, labels={}),
            resource=MonitoredResource(type="gke_container", labels=resource_labels),
            metric_kind="CUMULATIVE",
            value_type="INT64",
            points=[point],
        )


class ControllerSource(MetricsSource):
    """Pulls data from the controller and translates it into time series."""

    def __init__(self, cfg: SourceConfig, session: Any = None) -> None:
        self.translator = ControllerTranslator(
            cfg.zone, cfg.project, cfg.cluster, cfg.instance, cfg.resolution
        )
        self.client = ControllerClient(cfg.host, cfg.port, session)
        self._project_path = f"projects/{cfg.project}"

    def get_time_series_request(self) -> CreateTimeSeriesRequest:
        return self.translator.translate(self.client.get_metrics())

    def name(self) -> str:
        return "kube-controller-manager"

    def project_path(self) -> str:
        return self._project_path