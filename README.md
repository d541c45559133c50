# kubesd

`kubesd` is a library for connecting a Kubernetes cluster on Compute Engine
to Google's logging and monitoring APIs. It provides:

- a **logging sink** (`kubesd.stackdriver`) that turns Kubernetes events into
  log entries, batches them and writes them to the `events` log of a project;
- a **controller-manager metrics source** (`kubesd.monitor`) that scrapes the
  kube-controller-manager `/metrics` page, turns the node eviction count into
  a time series and pushes it to the monitoring API;
- **instance metadata helpers** (`kubesd.gce`) and a small **Prometheus-style
  metrics registry** (`kubesd.telemetry`) for the library's own counters.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Events and handlers

`kubesd.exporter.events` holds the event model and handler interfaces:

- `Event.from_dict(data)` builds an event from its API-server JSON form and
  `Event.to_dict()` returns it again.
- `EventHandler` (`on_add`, `on_update`, `on_delete`) and `Sink`
  (adds `on_list` and `run(stop)`) are the interfaces a sink implements.
- `EventHandlerWrapper` takes untyped notifications and passes only `Event`
  objects on; `on_delete` also unwraps a `DeletedFinalStateUnknown` tombstone.

`kubesd.exporter.concurrency.run_concurrently_until(stop, *funcs)` runs each
function in its own thread with the `threading.Event` `stop`, and returns once
`stop` is set and every function has returned.

## Logging sink

`StackdriverSink` buffers entries and flushes a batch when it reaches
`max_buffer_size` entries, or `flush_delay` seconds after the first entry of
the batch. At most `max_concurrency` writes run at once. On the first
`on_list` call it writes one warning entry noting that earlier events may
have been missed. `on_delete` exports nothing.

```python
import threading

from kubesd.exporter.events import Event
from kubesd.stackdriver.resources import (
    MonitoredResourceFactory,
    MonitoredResourceFactoryConfig,
    ResourceModelVersion,
)
from kubesd.stackdriver.sink import StackdriverSink
from kubesd.stackdriver.sink_config import SinkConfig
from kubesd.stackdriver.writer import LoggingWriter

config = SinkConfig(log_name="projects/my-project/logs/events")
resources = MonitoredResourceFactory(
    MonitoredResourceFactoryConfig(
        resource_model=ResourceModelVersion.NEW,
        cluster_name="my-cluster",
        location="us-central1",
        project_id="my-project",
    )
)
writer = LoggingWriter(token_source=lambda: "token")
sink = StackdriverSink(writer, None, config, resources)

stop = threading.Event()
threading.Thread(target=sink.run, args=(stop,)).start()
sink.on_add(Event.from_dict({"type": "Warning", "involvedObject": {"kind": "Pod", "name": "web-0"}}))
```

Events of type `Warning` get severity `WARNING`, all others `INFO`. The entry
timestamp is the event's `lastTimestamp`, or else its series'
`lastObservedTime`. The `count` and `firstTimestamp` fields are dropped from
the JSON payload.

With the `new` resource model, events about a `Pod` or `Node` are attached to
`k8s_pod` or `k8s_node` resources and others to `k8s_cluster`; with the `old`
model every event uses `gke_cluster`. `get_resource_model_version` maps
`"new"` to the new model and anything else to the old one.

`LoggingWriter.write` posts to `v2/entries:write` and retries every ten
seconds until it succeeds or the API answers with HTTP 400 (`ApiError`).

### Creating the sink on GCE

`StackdriverSinkFactory().create_new(opts)` reads the project, cluster name
and location from the instance metadata server and takes an access token for
the logging write scope from the default service account. It raises
`kubesd.gce.MetadataError` when not on GCE. Options, parsed by
`parse_sink_options`:

| Option | Default | Meaning |
| --- | --- | --- |
| `--flush-delay` | `5s` | Delay before a partly filled batch is sent (durations like `500ms`, `1h30m`). |
| `--max-buffer-size` | `100` | Maximum number of entries in one write request. |
| `--max-concurrency` | `10` | Maximum number of write requests in flight. |
| `--stackdriver-resource-model` | empty | `new` or anything else (old model). |
| `--endpoint` | empty | Base URL of the logging API; empty uses the default. |

Options may be written `-name=value`, `--name=value` or `--name value`; an
unknown option raises `ValueError`.

## Controller-manager metrics

```python
import functools

from kubesd import gce
from kubesd.monitor.controller import ControllerSource
from kubesd.monitor.poll import MonitoringClient, once

kubelet_cfg, ctrl_cfg = gce.new_configs(
    "use-gce", "use-gce", "use-gce", "use-gce", "use-gce", "use-gce",
    "", "", {}, 10255, 10252, 10.0,
)
source = ControllerSource(ctrl_cfg)
client = MonitoringClient(
    token_source=functools.partial(
        gce.access_token, "https://www.googleapis.com/auth/monitoring.write"
    )
)
once(source, client)
```

`gce.new_configs` replaces each `use-gce` value with the one from the
metadata server; a host of `use-instance-name` takes the instance name.

`once` scrapes the source, splits requests of more than 200 time series with
`sub_requests`, and pushes each part; failures are logged and counted, not
raised. `parse_metrics` reads `node_collector_evictions_number` and
`process_start_time_seconds` from Prometheus text format.

## Own metrics

Counters of the sink, the writer and `kubesd.monitor.metrics` are registered
in `kubesd.telemetry.REGISTRY`. `serve_metrics(REGISTRY, "", 6062)` serves
them at `/metrics` from a background thread and returns the server.

## What this package does not do

- It has no command-line program; everything is used as a library.
- It does not watch the Kubernetes API. Nothing lists or watches events for
  you: your code must call `on_list`, `on_add` and `on_update` on the sink.
- It does not collect kubelet summary statistics; only the
  controller-manager source is provided.