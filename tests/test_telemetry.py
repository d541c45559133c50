import urllib.error
import urllib.request

import pytest

from kubesd.telemetry import (
    Counter,
    Histogram,
    LabeledCounter,
    Registry,
    exponential_buckets,
    serve_metrics,
)


def test_counter_inc_and_add():
    counter = Counter("entries", "Entries seen")
    counter.inc()
    counter.add(4)
    assert counter.value == 5


def test_counter_rejects_decrease():
    counter = Counter("entries", "Entries seen")
    with pytest.raises(ValueError):
        counter.add(-1)


def test_subsystem_prefixes_name():
    counter = Counter("received_entry_count", "help", subsystem="stackdriver_sink")
    assert counter.name == "stackdriver_sink_received_entry_count"


def test_labeled_counter_children_are_separate():
    family = LabeledCounter("request_count", "Requests", ["code"])
    family.labels("200").inc()
    family.labels("200").inc()
    family.labels("400").inc()
    assert family.labels("200").value == 2
    assert family.labels("400").value == 1


def test_labeled_counter_wrong_cardinality():
    family = LabeledCounter("request_count", "Requests", ["code"])
    with pytest.raises(ValueError):
        family.labels("200", "extra")


def test_histogram_counts_and_sum():
    histogram = Histogram("latency", "Latency", buckets=[1.0, 3.0])
    histogram.observe(0.5)
    histogram.observe(2.0)
    histogram.observe(10.0)
    assert histogram.count == 3
    assert histogram.sum == pytest.approx(12.5)


def test_histogram_rejects_unsorted_buckets():
    with pytest.raises(ValueError):
        Histogram("latency", "Latency", buckets=[3.0, 1.0])


def test_render_format():
    registry = Registry()
    family = LabeledCounter("request_count", "Requests", ["code"])
    family.labels("200").add(2)
    histogram = Histogram("h", "Hist", buckets=[1.0, 3.0])
    histogram.observe(0.5)
    histogram.observe(2.0)
    registry.register(family, histogram)
    lines = registry.render().splitlines()
    assert "# TYPE request_count counter" in lines
    assert 'request_count{code="200"} 2' in lines
    assert "# TYPE h histogram" in lines
    assert 'h_bucket{le="1"} 1' in lines
    assert 'h_bucket{le="3"} 2' in lines
    assert 'h_bucket{le="+Inf"} 2' in lines
    assert "h_count 2" in lines


def test_duplicate_registration_fails():
    registry = Registry()
    registry.register(Counter("same", "one"))
    with pytest.raises(ValueError):
        registry.register(Counter("same", "two"))


def test_exponential_buckets_grow_by_factor():
    buckets = exponential_buckets(1.0, 1.5, 12)
    assert len(buckets) == 12
    assert buckets[0] == 1.0
    for earlier, later in zip(buckets, buckets[1:]):
        assert later == pytest.approx(earlier * 1.5)


@pytest.mark.parametrize("args", [(1.0, 1.5, 0), (0.0, 1.5, 3), (1.0, 1.0, 3)])
def test_exponential_buckets_invalid(args):
    with pytest.raises(ValueError):
        exponential_buckets(*args)


def test_serve_metrics_round_trip():
    registry = Registry()
    counter = Counter("served_total", "Served")
    counter.add(3)
    registry.register(counter)
    server = serve_metrics(registry, "127.0.0.1", 0)
    try:
        port = server.server_address[1]
        with urllib.request.urlopen(f"http://127.0.0.1:{port}/metrics", timeout=5) as resp:
            body = resp.read().decode("utf-8")
        assert body == registry.render()
        with pytest.raises(urllib.error.HTTPError) as info:
            urllib.request.urlopen(f"http://127.0.0.1:{port}/other", timeout=5)
        assert info.value.code == 404
    finally:
        server.shutdown()
        server.server_close()