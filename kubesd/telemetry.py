"""In-process metrics exposed in the Prometheus text format."""

from __future__ import annotations

import logging
import math
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterable, Iterator, Sequence

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

_Sample = tuple[str, dict[str, str], float]


def _full_name(name: str, subsystem: str) -> str:
    return "_".join(part for part in (subsystem, name) if part)


def _format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_sample(name: str, labels: dict[str, str], value: float) -> str:
    if labels:
        rendered = ",".join(f'{key}="{_escape_label(val)}"' for key, val in labels.items())
        return f"{name}{{{rendered}}} {_format_value(value)}"
    return f"{name} {_format_value(value)}"


class Counter:
    """A monotonically increasing value."""

    kind = "counter"

    def __init__(self, name: str, help_text: str = "", subsystem: str = "") -> None:
        self.name = _full_name(name, subsystem)
        self.help_text = help_text
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def inc(self) -> None:
        """Increase the counter by one."""
        self.add(1.0)

    def add(self, amount: float) -> None:
        """Increase the counter by a non-negative amount."""
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            self._value += amount

    def _samples(self) -> Iterator[_Sample]:
        yield self.name, {}, self.value


class LabeledCounter:
    """A family of counters distinguished by label values."""

    kind = "counter"

    def __init__(
        self,
        name: str,
        help_text: str,
        label_names: Sequence[str],
        subsystem: str = "",
    ) -> None:
        self.name = _full_name(name, subsystem)
        self.help_text = help_text
        self.label_names = tuple(label_names)
        self._children: dict[tuple[str, ...], Counter] = {}
        self._lock = threading.Lock()

    def labels(self, *args: str) -> Counter:
        """Return the counter for the given label values, creating it if needed."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"inconsistent label cardinality: expected {len(self.label_names)} "
                f"label values but got {len(args)}"
            )
        key = tuple(str(arg) for arg in args)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = Counter(self.name, self.help_text)
                self._children[key] = child
            return child

    def _samples(self) -> Iterator[_Sample]:
        with self._lock:
            children = sorted(self._children.items())
        for key, child in children:
            yield self.name, dict(zip(self.label_names, key)), child.value


class Histogram:
    """Counts observations in cumulative buckets."""

    kind = "histogram"

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: Iterable[float] = DEFAULT_BUCKETS,
        subsystem: str = "",
    ) -> None:
        bounds = [float(bound) for bound in buckets]
        if bounds and math.isinf(bounds[-1]) and bounds[-1] > 0:
            bounds.pop()
        if any(later <= earlier for earlier, later in zip(bounds, bounds[1:])):
            raise ValueError("histogram buckets must be in increasing order")
        self.name = _full_name(name, subsystem)
        self.help_text = help_text
        self.buckets = tuple(bounds)
        self._counts = [0] * (len(bounds) + 1)
        self._sum = 0.0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return sum(self._counts)

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum

    def observe(self, value: float) -> None:
        """Record one observation."""
        slot = next(
            (index for index, bound in enumerate(self.buckets) if value <= bound),
            len(self.buckets),
        )
        with self._lock:
            self._counts[slot] += 1
            self._sum += value

    def _samples(self) -> Iterator[_Sample]:
        with self._lock:
            counts = list(self._counts)
            total = self._sum
        cumulative = 0
        for bound, count in zip(self.buckets, counts):
            cumulative += count
            yield f"{self.name}_bucket", {"le": _format_value(bound)}, cumulative
        cumulative += counts[-1]
        yield f"{self.name}_bucket", {"le": "+Inf"}, cumulative
        yield f"{self.name}_sum", {}, total
        yield f"{self.name}_count", {}, cumulative


class Registry:
    """A set of metrics rendered together."""

    def __init__(self) -> None:
        self._metrics: dict[str, Counter | LabeledCounter | Histogram] = {}
        self._lock = threading.Lock()

    def register(self, *args: Counter | LabeledCounter | Histogram) -> None:
        """Add metrics; a name may only be registered once."""
        with self._lock:
            for metric in args:
                if metric.name in self._metrics:
                    raise ValueError(
                        f"duplicate metrics collector registration attempted: {metric.name}"
                    )
                self._metrics[metric.name] = metric

    def render(self) -> str:
        """Return all metrics in the Prometheus text exposition format."""
        with self._lock:
            metrics = sorted(self._metrics.items())
        lines: list[str] = []
        for name, metric in metrics:
            lines.append(f"# HELP {name} {_escape_help(metric.help_text)}")
            lines.append(f"# TYPE {name} {metric.kind}")
            lines.extend(_format_sample(*sample) for sample in metric._samples())
        return "\n".join(lines) + "\n" if lines else ""


REGISTRY = Registry()


def exponential_buckets(start: float, factor: float, count: int) -> list[float]:
    """Return ``count`` bucket bounds, the first ``start``, each ``factor`` times the last."""
    if count < 1:
        raise ValueError("exponential_buckets needs a positive count")
    if start <= 0:
        raise ValueError("exponential_buckets needs a positive start value")
    if factor <= 1:
        raise ValueError("exponential_buckets needs a factor greater than 1")
    buckets = []
    bound = float(start)
    for _ in range(count):
        buckets.append(bound)
        bound *= factor
    return buckets


def serve_metrics(registry: Registry, host: str = "", port: int = 80) -> ThreadingHTTPServer:
    """Serve ``registry`` at ``/metrics`` from a background thread; return the server."""

    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            if self.path.split("?", 1)[0] != "/metrics":
                self.send_error(404)
                return
            body = registry.render().encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", CONTENT_TYPE)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:  # noqa: A002
            logger.debug("%s - %s", self.address_string(), format % args)

    server = ThreadingHTTPServer((host, port), _Handler)
    server.daemon_threads = True
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server