from types import SimpleNamespace
from unittest import mock

import pytest
import requests

from kubesd import gce
from kubesd.stackdriver.sink_config import (
    DEFAULT_FLUSH_DELAY,
    DEFAULT_MAX_BUFFER_SIZE,
    DEFAULT_MAX_CONCURRENCY,
)
from kubesd.stackdriver.sink_factory import (
    SinkOptions,
    StackdriverSinkFactory,
    parse_sink_options,
)

METADATA = {
    "project/project-id": "test-project\n",
    "instance/attributes/cluster-name": " test-cluster ",
    "instance/attributes/cluster-location": "test-location",
}


def fake_get(url, headers=None, params=None, timeout=None):
    for suffix, body in METADATA.items():
        if url.endswith(suffix):
            return SimpleNamespace(status_code=200, text=body, headers={})
    return SimpleNamespace(status_code=404, text="", headers={})


def test_empty_option_gives_defaults():
    options = parse_sink_options([""])
    assert options == SinkOptions()
    assert options.flush_delay == DEFAULT_FLUSH_DELAY
    assert options.max_buffer_size == DEFAULT_MAX_BUFFER_SIZE
    assert options.max_concurrency == DEFAULT_MAX_CONCURRENCY


def test_flags_in_both_forms():
    options = parse_sink_options(
        ["-max-buffer-size", "7", "--endpoint=http://localhost:8080",
         "-stackdriver-resource-model=new", "--max-concurrency", "3"]
    )
    assert options.max_buffer_size == 7
    assert options.max_concurrency == 3
    assert options.endpoint == "http://localhost:8080"
    assert options.resource_model_version == "new"


def test_duration_flag():
    assert parse_sink_options(["-flush-delay=100ms"]).flush_delay == pytest.approx(0.1)
    assert parse_sink_options(["-flush-delay", "2s"]).flush_delay == pytest.approx(2.0)


def test_parsing_stops_at_non_flag():
    assert parse_sink_options(["value", "-bogus"]) == SinkOptions()


@pytest.mark.parametrize(
    "opts",
    [["-bogus=1"], ["-max-buffer-size"], ["-max-buffer-size=many"],
     ["-flush-delay=5"], ["-flush-delay=5parsecs"], ["---x"], ["-help"]],
)
def test_invalid_options(opts):
    with pytest.raises(ValueError):
        parse_sink_options(opts)


def test_create_new_rejects_bad_options():
    with pytest.raises(ValueError, match="failed to parse sink opts"):
        StackdriverSinkFactory().create_new(["-unknown=1"])


def test_create_new_builds_configured_sink(monkeypatch):
    monkeypatch.setenv(gce.METADATA_HOST_ENV, "metadata.example")
    with mock.patch("requests.get", side_effect=fake_get):
        sink = StackdriverSinkFactory().create_new(
            ["-flush-delay=2s", "-max-buffer-size=7", "-stackdriver-resource-model=new"]
        )
    assert sink.log_name == "projects/test-project/logs/events"
    assert sink.config.flush_delay == pytest.approx(2.0)
    assert sink.config.max_buffer_size == 7
    assert sink.config.max_concurrency == DEFAULT_MAX_CONCURRENCY
    resource = sink.resource_factory.default_resource
    assert resource.type == "k8s_cluster"
    assert resource.labels == {
        "cluster_name": "test-cluster",
        "location": "test-location",
        "project_id": "test-project",
    }


def test_create_new_off_gce_fails(monkeypatch):
    monkeypatch.delenv(gce.METADATA_HOST_ENV, raising=False)
    with mock.patch("requests.get", side_effect=requests.ConnectionError("no route")):
        with pytest.raises(gce.MetadataError, match="failed to build sink config"):
            StackdriverSinkFactory().create_new([""])