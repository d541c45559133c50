import pytest

from kubesd.exporter.events import (
    DeletedFinalStateUnknown,
    Event,
    EventHandler,
    EventHandlerWrapper,
    EventList,
    EventSeries,
    ObjectReference,
)


class FakeEventHandler(EventHandler):
    def __init__(self):
        self.calls = []

    def on_add(self, event):
        self.calls.append(("add", event))

    def on_update(self, old_event, new_event):
        self.calls.append(("update", old_event, new_event))

    def on_delete(self, event):
        self.calls.append(("delete", event))


@pytest.mark.parametrize(
    "obj, expected",
    [(None, False), (42, False), (Event(), True)],
    ids=["obj=nil", "obj=non-event", "obj=event"],
)
def test_event_watch_handler_add(obj, expected):
    handler = FakeEventHandler()
    EventHandlerWrapper(handler).on_add(obj)
    triggered = any(call[0] == "add" for call in handler.calls)
    assert triggered == expected


@pytest.mark.parametrize(
    "old_obj, new_obj, expected",
    [
        (None, Event(), True),
        (42, Event(), False),
        (Event(), None, False),
        (Event(), 42, False),
        (Event(), Event(), True),
    ],
    ids=[
        "oldObj=nil,newObj=event",
        "oldObj=non-event,newObj=event",
        "oldObj=event,newObj=nil",
        "oldObj=event,newObj=non-event",
        "oldObj=event,newObj=event",
    ],
)
def test_event_watch_handler_update(old_obj, new_obj, expected):
    handler = FakeEventHandler()
    EventHandlerWrapper(handler).on_update(old_obj, new_obj)
    triggered = any(call[0] == "update" for call in handler.calls)
    assert triggered == expected


@pytest.mark.parametrize(
    "obj, expected",
    [(None, False), (42, False), (Event(), True)],
    ids=["obj=nil", "obj=non-event", "obj=event"],
)
def test_event_watch_handler_delete(obj, expected):
    handler = FakeEventHandler()
    EventHandlerWrapper(handler).on_delete(obj)
    triggered = any(call[0] == "delete" for call in handler.calls)
    assert triggered == expected


def test_update_passes_both_events_through():
    handler = FakeEventHandler()
    old, new = Event(name="a", count=1), Event(name="a", count=2)
    EventHandlerWrapper(handler).on_update(old, new)
    assert handler.calls == [("update", old, new)]


def test_delete_unwraps_tombstone_with_event():
    handler = FakeEventHandler()
    event = Event(name="gone", namespace="default")
    EventHandlerWrapper(handler).on_delete(DeletedFinalStateUnknown("default/gone", event))
    assert handler.calls == [("delete", event)]


def test_delete_ignores_tombstone_with_non_event():
    handler = FakeEventHandler()
    EventHandlerWrapper(handler).on_delete(DeletedFinalStateUnknown("k", 42))
    assert handler.calls == []


def _sample_dict():
    return {
        "metadata": {
            "name": "pod-a.1",
            "namespace": "default",
            "uid": "uid-1",
            "resourceVersion": "123",
            "creationTimestamp": "2016-06-08T00:25:37Z",
        },
        "involvedObject": {"kind": "Pod", "name": "pod-a", "namespace": "default"},
        "reason": "Scheduled",
        "message": "Successfully assigned",
        "source": {"component": "scheduler"},
        "firstTimestamp": "2016-06-08T00:25:37Z",
        "lastTimestamp": "2016-06-09T23:23:43Z",
        "count": 3,
        "type": "Warning",
        "series": {"count": 2, "lastObservedTime": "2016-06-09T23:23:43.123456Z"},
    }


def test_from_dict_reads_fields():
    event = Event.from_dict(_sample_dict())
    assert event.name == "pod-a.1"
    assert event.namespace == "default"
    assert event.involved_object == ObjectReference(kind="Pod", namespace="default", name="pod-a")
    assert event.count == 3
    assert event.type == "Warning"
    assert event.source_component == "scheduler"
    assert event.series.count == 2
    assert event.series.last_observed_time.microsecond == 123456


def test_to_dict_round_trip():
    data = _sample_dict()
    encoded = Event.from_dict(data).to_dict()
    assert encoded["kind"] == "Event"
    assert encoded["apiVersion"] == "v1"
    assert encoded["lastTimestamp"] == "2016-06-09T23:23:43Z"
    assert encoded["firstTimestamp"] == "2016-06-08T00:25:37Z"
    assert encoded["series"]["lastObservedTime"] == "2016-06-09T23:23:43.123456Z"
    assert encoded["involvedObject"] == data["involvedObject"]
    assert encoded["metadata"]["resourceVersion"] == "123"
    assert Event.from_dict(encoded) == Event.from_dict(data)


def test_to_dict_of_empty_event_keeps_null_timestamps():
    encoded = Event().to_dict()
    assert encoded["firstTimestamp"] is None
    assert encoded["lastTimestamp"] is None
    assert encoded["eventTime"] is None
    assert "count" not in encoded
    assert "series" not in encoded


def test_nanosecond_timestamp_is_truncated_to_microseconds():
    event = Event.from_dict(
        {"series": {"count": 1, "lastObservedTime": "2016-06-09T23:23:43.123456789Z"}}
    )
    assert event.series == EventSeries(
        count=1, last_observed_time=event.series.last_observed_time
    )
    assert event.series.last_observed_time.microsecond == 123456


def test_invalid_timestamp_raises():
    with pytest.raises(ValueError):
        Event.from_dict({"lastTimestamp": "yesterday"})


def test_event_list_defaults_to_empty():
    event_list = EventList()
    assert event_list.items == []
    assert event_list.continue_token == ""