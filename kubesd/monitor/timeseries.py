"""Time series data written to the monitoring API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def format_rfc3339(moment: datetime) -> str:
    """Format a time as RFC 3339 with whole seconds; naive times count as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    offset = moment.utcoffset()
    seconds = int(offset.total_seconds()) if offset is not None else 0
    if seconds == 0:
        return text + "Z"
    sign = "+" if seconds > 0 else "-"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


@dataclass
class TimeInterval:
    """The span a point covers, as RFC 3339 strings."""

    start_time: str = ""
    end_time: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.end_time:
            result["endTime"] = self.end_time
        if self.start_time:
            result["startTime"] = self.start_time
        return result


@dataclass
class TypedValue:
    """A point's value; a value that is set is sent even when it is zero."""

    int64_value: int | None = None
    double_value: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.double_value is not None:
            result["doubleValue"] = self.double_value
        if self.int64_value is not None:
            # 64-bit integers travel as strings in the JSON encoding.
            result["int64Value"] = str(self.int64_value)
        return result


@dataclass
class Point:
    """A single data point of a time series."""

    interval: TimeInterval
    value: TypedValue

    def to_dict(self) -> dict[str, Any]:
        return {"interval": self.interval.to_dict(), "value": self.value.to_dict()}


@dataclass
class Metric:
    """A metric type with its labels."""

    type: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.type:
            result["type"] = self.type
        return result


@dataclass
class MonitoredResource:
    """A typed set of labels identifying the resource being measured."""

    type: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.type:
            result["type"] = self.type
        return result


@dataclass
class TimeSeries:
    """Points of one metric for one monitored resource."""

    metric: Metric
    resource: MonitoredResource
    metric_kind: str = ""
    value_type: str = ""
    points: list[Point] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"metric": self.metric.to_dict()}
        if self.metric_kind:
            result["metricKind"] = self.metric_kind
        if self.points:
            result["points"] = [point.to_dict() for point in self.points]
        result["resource"] = self.resource.to_dict()
        if self.value_type:
            result["valueType"] = self.value_type
        return result


@dataclass
class CreateTimeSeriesRequest:
    """Body of a request creating time series."""

    time_series: list[TimeSeries] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.time_series:
            result["timeSeries"] = [series.to_dict() for series in self.time_series]
        return result