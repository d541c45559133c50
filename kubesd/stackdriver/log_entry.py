"""Building log entries from events and plain messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from kubesd.exporter.events import Event
from kubesd.stackdriver.resources import MonitoredResource, MonitoredResourceFactory

logger = logging.getLogger(__name__)

# Fields dropped from the payload: events are already demuxed, so the count
# and the first occurrence are not relevant.
FIELD_BLACKLIST = ("count", "firstTimestamp")


def format_rfc3339_nano(moment: datetime) -> str:
    """Format a time as RFC 3339 with trailing zeros of the fraction removed."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    fraction = f"{moment.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    offset = moment.utcoffset()
    seconds = int(offset.total_seconds()) if offset is not None else 0
    if seconds == 0:
        return text + "Z"
    sign = "+" if seconds > 0 else "-"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def serialize_event(event: Event) -> dict[str, Any]:
    """Return the JSON form of the event without the blacklisted fields."""
    payload = event.to_dict()
    for name in FIELD_BLACKLIST:
        payload.pop(name, None)
    return payload


@dataclass
class LogEntry:
    """A single entry written to the logging API."""

    json_payload: dict[str, Any] | None = None
    text_payload: str = ""
    severity: str = ""
    timestamp: str = ""
    resource: MonitoredResource | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.json_payload is not None:
            result["jsonPayload"] = self.json_payload
        if self.text_payload:
            result["textPayload"] = self.text_payload
        if self.severity:
            result["severity"] = self.severity
        if self.timestamp:
            result["timestamp"] = self.timestamp
        if self.resource is not None:
            result["resource"] = self.resource.to_dict()
        return result


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LogEntryFactory:
    """Constructs log entries from events or messages."""

    def __init__(
        self,
        clock: Callable[[], datetime] | None,
        resource_factory: MonitoredResourceFactory,
    ) -> None:
        self._clock = clock or _utc_now
        self._resource_factory = resource_factory

    def from_event(self, event: Event) -> LogEntry:
        try:
            payload: dict[str, Any] | None = serialize_event(event)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Failed to encode event %r: %s", event, exc)
            payload = None

        entry = LogEntry(
            json_payload=payload,
            severity="WARNING" if event.type == "Warning" else "INFO",
            resource=self._resource_factory.resource_from_event(event),
        )
        if event.last_timestamp is not None:
            # Emitted through the core/v1 API.
            entry.timestamp = format_rfc3339_nano(event.last_timestamp)
        elif event.series is not None and event.series.last_observed_time is not None:
            # Emitted through the events/v1 API.
            entry.timestamp = format_rfc3339_nano(event.series.last_observed_time)
        return entry

    def from_message(self, msg: str) -> LogEntry:
        return LogEntry(
            text_payload=msg,
            severity="WARNING",
            timestamp=format_rfc3339_nano(self._clock()),
        )