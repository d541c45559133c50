"""Creating the logging sink from command-line style options."""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from kubesd import gce
from kubesd.exporter.events import SinkFactory
from kubesd.stackdriver.resources import (
    MonitoredResourceFactory,
    new_monitored_resource_factory_config,
)
from kubesd.stackdriver.sink import StackdriverSink
from kubesd.stackdriver.sink_config import (
    DEFAULT_ENDPOINT,
    DEFAULT_FLUSH_DELAY,
    DEFAULT_MAX_BUFFER_SIZE,
    DEFAULT_MAX_CONCURRENCY,
    new_gce_sink_config,
)
from kubesd.stackdriver.writer import LoggingWriter

LOGGING_WRITE_SCOPE = "https://www.googleapis.com/auth/logging.write"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d*)(?:\.(\d*))?([a-zµμ]+)")


def _parse_duration(text: str) -> float:
    """Parse a duration such as ``5s`` or ``1h30m`` into seconds."""
    body = text
    sign = 1.0
    if body and body[0] in "+-":
        sign = -1.0 if body[0] == "-" else 1.0
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        raise ValueError(f"time: invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None or not (match.group(1) or match.group(2)):
            raise ValueError(f"time: invalid duration {text!r}")
        unit = _DURATION_UNITS.get(match.group(3))
        if unit is None:
            raise ValueError(f"time: unknown unit {match.group(3)!r} in duration {text!r}")
        whole, fraction = match.group(1) or "0", match.group(2) or "0"
        total += float(f"{whole}.{fraction}") * unit
        pos = match.end()
    return sign * total


def _parse_int(text: str) -> int:
    return int(text, 0)


_FLAGS: dict[str, tuple[str, Callable[[str], object]]] = {
    "flush-delay": ("flush_delay", _parse_duration),
    "max-buffer-size": ("max_buffer_size", _parse_int),
    "max-concurrency": ("max_concurrency", _parse_int),
    "stackdriver-resource-model": ("resource_model_version", str),
    "endpoint": ("endpoint", str),
}


@dataclass
class SinkOptions:
    """User-provided sink settings; ``flush_delay`` is in seconds."""

    flush_delay: float = DEFAULT_FLUSH_DELAY
    max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    resource_model_version: str = ""
    endpoint: str = DEFAULT_ENDPOINT


def parse_sink_options(opts: Sequence[str]) -> SinkOptions:
    """Parse ``-name=value`` / ``--name value`` options, stopping at the first non-flag."""
    values: dict[str, object] = {}
    args = iter(opts)
    for arg in args:
        if len(arg) < 2 or arg[0] != "-":
            break
        if arg == "--":
            break
        name = arg[2:] if arg[1] == "-" else arg[1:]
        if not name or name[0] in "-=":
            raise ValueError(f"bad flag syntax: {arg}")
        name, has_value, value = name.partition("=")
        if name in ("h", "help"):
            raise ValueError("flag: help requested")
        spec = _FLAGS.get(name)
        if spec is None:
            raise ValueError(f"flag provided but not defined: -{name}")
        if not has_value:
            try:
                value = next(args)
            except StopIteration:
                raise ValueError(f"flag needs an argument: -{name}") from None
        attr, parse = spec
        try:
            values[attr] = parse(value)
        except ValueError as exc:
            raise ValueError(f'invalid value "{value}" for flag -{name}: {exc}') from exc
    return SinkOptions(**values)


class StackdriverSinkFactory(SinkFactory):
    """Creates logging sinks configured from instance metadata and options."""

    def create_new(self, opts: Sequence[str]) -> StackdriverSink:
        try:
            options = parse_sink_options(opts)
        except ValueError as exc:
            raise ValueError(f"failed to parse sink opts: {exc}") from exc

        try:
            config = new_gce_sink_config()
        except gce.MetadataError as exc:
            raise gce.MetadataError(f"failed to build sink config: {exc}") from exc
        config.flush_delay = options.flush_delay
        config.max_buffer_size = options.max_buffer_size
        config.max_concurrency = options.max_concurrency
        config.endpoint = options.endpoint

        try:
            resource_config = new_monitored_resource_factory_config(
                options.resource_model_version
            )
        except gce.MetadataError as exc:
            raise gce.MetadataError(
                f"failed to create stackdriver monitored resource factory: {exc}"
            ) from exc

        writer = LoggingWriter(
            endpoint=config.endpoint,
            token_source=functools.partial(gce.access_token, LOGGING_WRITE_SCOPE),
        )
        return StackdriverSink(writer, None, config, MonitoredResourceFactory(resource_config))