import pytest
import requests

from kubesd import gce
from kubesd.stackdriver.sink_config import (
    DEFAULT_ENDPOINT,
    DEFAULT_FLUSH_DELAY,
    DEFAULT_MAX_BUFFER_SIZE,
    DEFAULT_MAX_CONCURRENCY,
    new_gce_sink_config,
)


class FakeResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code
        self.headers = {"Metadata-Flavor": "Google"}


def install(monkeypatch, values):
    monkeypatch.delenv(gce.METADATA_HOST_ENV, raising=False)

    def fake_get(url, **kwargs):
        for suffix, value in values.items():
            if url.endswith(suffix):
                return FakeResponse(value)
        return FakeResponse("not found", 404)

    monkeypatch.setattr(requests, "get", fake_get)


def test_gce_sink_config(monkeypatch):
    install(monkeypatch, {"project/project-id": "test-project"})
    config = new_gce_sink_config()
    assert config.log_name == "projects/test-project/logs/events"
    assert config.flush_delay == DEFAULT_FLUSH_DELAY == 5.0
    assert config.max_buffer_size == DEFAULT_MAX_BUFFER_SIZE == 100
    assert config.max_concurrency == DEFAULT_MAX_CONCURRENCY == 10
    assert config.endpoint == DEFAULT_ENDPOINT


def test_not_on_gce(monkeypatch):
    monkeypatch.delenv(gce.METADATA_HOST_ENV, raising=False)

    def refuse(*args, **kwargs):
        raise requests.ConnectionError("no route")

    monkeypatch.setattr(requests, "get", refuse)
    with pytest.raises(gce.MetadataError, match="not running on GCE"):
        new_gce_sink_config()


def test_missing_project(monkeypatch):
    install(monkeypatch, {})
    with pytest.raises(gce.MetadataError, match="failed to get project id"):
        new_gce_sink_config()