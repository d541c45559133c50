"""Kubernetes event objects and the handler interfaces fed by the watcher."""

from __future__ import annotations

import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)

_REFERENCE_FIELDS = (
    ("kind", "kind"),
    ("namespace", "namespace"),
    ("name", "name"),
    ("uid", "uid"),
    ("api_version", "apiVersion"),
    ("resource_version", "resourceVersion"),
    ("field_path", "fieldPath"),
)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    match = _TIME_RE.match(value)
    if match is None:
        raise ValueError(f"invalid timestamp {value!r}")
    base, fraction, zone = match.groups()
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    offset = "+00:00" if zone == "Z" else zone
    moment = datetime.fromisoformat(base + offset).replace(microsecond=micro)
    return moment.astimezone(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _format_time(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return _as_utc(moment).strftime("%Y-%m-%dT%H:%M:%SZ")


def _format_micro_time(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return _as_utc(moment).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass
class ObjectReference:
    """Reference to the object an event is about."""

    kind: str = ""
    namespace: str = ""
    name: str = ""
    uid: str = ""
    api_version: str = ""
    resource_version: str = ""
    field_path: str = ""


def _reference_from_dict(data: dict[str, Any]) -> ObjectReference:
    return ObjectReference(
        **{attr: data.get(key, "") or "" for attr, key in _REFERENCE_FIELDS}
    )


def _reference_to_dict(ref: ObjectReference) -> dict[str, Any]:
    return {
        key: getattr(ref, attr)
        for attr, key in _REFERENCE_FIELDS
        if getattr(ref, attr)
    }


@dataclass
class EventSeries:
    """Series information of an event emitted through the events/v1 API."""

    count: int = 0
    last_observed_time: datetime | None = None


@dataclass
class Event:
    """A core/v1 Kubernetes event."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    creation_timestamp: datetime | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    involved_object: ObjectReference = field(default_factory=ObjectReference)
    reason: str = ""
    message: str = ""
    source_component: str = ""
    source_host: str = ""
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    count: int = 0
    type: str = ""
    event_time: datetime | None = None
    series: EventSeries | None = None
    action: str = ""
    related: ObjectReference | None = None
    reporting_component: str = ""
    reporting_instance: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        """Build an event from its JSON form as served by the API server."""
        meta = data.get("metadata") or {}
        source = data.get("source") or {}
        series = data.get("series")
        related = data.get("related")
        return cls(
            name=meta.get("name", "") or "",
            namespace=meta.get("namespace", "") or "",
            uid=meta.get("uid", "") or "",
            resource_version=meta.get("resourceVersion", "") or "",
            creation_timestamp=_parse_time(meta.get("creationTimestamp")),
            labels=dict(meta.get("labels") or {}),
            annotations=dict(meta.get("annotations") or {}),
            involved_object=_reference_from_dict(data.get("involvedObject") or {}),
            reason=data.get("reason", "") or "",
            message=data.get("message", "") or "",
            source_component=source.get("component", "") or "",
            source_host=source.get("host", "") or "",
            first_timestamp=_parse_time(data.get("firstTimestamp")),
            last_timestamp=_parse_time(data.get("lastTimestamp")),
            count=int(data.get("count") or 0),
            type=data.get("type", "") or "",
            event_time=_parse_time(data.get("eventTime")),
            series=(
                EventSeries(
                    count=int(series.get("count") or 0),
                    last_observed_time=_parse_time(series.get("lastObservedTime")),
                )
                if series
                else None
            ),
            action=data.get("action", "") or "",
            related=_reference_from_dict(related) if related else None,
            reporting_component=data.get("reportingComponent", "") or "",
            reporting_instance=data.get("reportingInstance", "") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the event, as the API server encodes it."""
        metadata: dict[str, Any] = {}
        for key, value in (
            ("name", self.name),
            ("namespace", self.namespace),
            ("uid", self.uid),
            ("resourceVersion", self.resource_version),
        ):
            if value:
                metadata[key] = value
        metadata["creationTimestamp"] = _format_time(self.creation_timestamp)
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)

        source: dict[str, Any] = {}
        if self.source_component:
            source["component"] = self.source_component
        if self.source_host:
            source["host"] = self.source_host

        result: dict[str, Any] = {
            "kind": "Event",
            "apiVersion": "v1",
            "metadata": metadata,
            "involvedObject": _reference_to_dict(self.involved_object),
        }
        if self.reason:
            result["reason"] = self.reason
        if self.message:
            result["message"] = self.message
        result["source"] = source
        result["firstTimestamp"] = _format_time(self.first_timestamp)
        result["lastTimestamp"] = _format_time(self.last_timestamp)
        if self.count:
            result["count"] = self.count
        if self.type:
            result["type"] = self.type
        result["eventTime"] = _format_micro_time(self.event_time)
        if self.series is not None:
            series: dict[str, Any] = {}
            if self.series.count:
                series["count"] = self.series.count
            series["lastObservedTime"] = _format_micro_time(
                self.series.last_observed_time
            )
            result["series"] = series
        if self.action:
            result["action"] = self.action
        if self.related is not None:
            result["related"] = _reference_to_dict(self.related)
        result["reportingComponent"] = self.reporting_component
        result["reportingInstance"] = self.reporting_instance
        return result


@dataclass
class EventList:
    """A page of events returned by a list request."""

    items: list[Event] = field(default_factory=list)
    resource_version: str = ""
    continue_token: str = ""


@dataclass(frozen=True)
class DeletedFinalStateUnknown:
    """Tombstone for an object whose deletion was missed by the watch."""

    key: str
    obj: Any


class EventHandler(ABC):
    """Acts upon signals from a watcher that only watches events."""

    @abstractmethod
    def on_add(self, event: Event) -> None:
        """Handle an event that appeared while watching."""

    @abstractmethod
    def on_update(self, old_event: Event | None, new_event: Event) -> None:
        """Handle an event that changed; ``old_event`` is None if unknown."""

    @abstractmethod
    def on_delete(self, event: Event) -> None:
        """Handle an event that was removed."""


class Sink(EventHandler):
    """Handles event actions and the initial list of events.

    ``on_add`` only receives events added during the watch; events that
    existed before are seen through ``on_list``.
    """

    @abstractmethod
    def on_list(self, event_list: EventList) -> None:
        """Handle a list of events received from the API server."""

    @abstractmethod
    def run(self, stop: threading.Event) -> None:
        """Process handled events until ``stop`` is set."""


class SinkFactory(ABC):
    """Creates sinks from user-provided options."""

    @abstractmethod
    def create_new(self, opts: list[str]) -> Sink:
        """Create a new sink configured by ``opts``."""


class EventHandlerWrapper:
    """Adapts untyped store notifications to an :class:`EventHandler`."""

    def __init__(self, handler: EventHandler) -> None:
        self.handler = handler

    def on_add(self, obj: Any) -> None:
        event = self._convert(obj)
        if event is not None:
            self.handler.on_add(event)

    def on_update(self, old_obj: Any, new_obj: Any) -> None:
        old_event = self._convert(old_obj)
        new_event = self._convert(new_obj)
        if new_event is not None and (old_obj is None or old_event is not None):
            self.handler.on_update(old_event, new_event)

    def on_delete(self, obj: Any) -> None:
        # A dropped delete shows up on relist as a tombstone holding the
        # last known, possibly stale, state of the object.
        event = obj
        if not isinstance(event, Event):
            if not isinstance(obj, DeletedFinalStateUnknown):
                logger.debug("Object is neither event nor tombstone: %r", obj)
                return
            event = obj.obj
            if not isinstance(event, Event):
                logger.debug("Tombstone contains object that is not an event: %r", obj)
                return
        self.handler.on_delete(event)

    @staticmethod
    def _convert(obj: Any) -> Event | None:
        if isinstance(obj, Event):
            return obj
        logger.debug("Event watch handler received not an event, but %r", obj)
        return None