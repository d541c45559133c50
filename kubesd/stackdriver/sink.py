"""Sink batching event log entries and writing them concurrently."""

from __future__ import annotations

import logging
import queue
import threading
import time
from datetime import datetime
from typing import Callable

from kubesd import telemetry
from kubesd.exporter.events import Event, EventList, Sink
from kubesd.stackdriver.log_entry import LogEntry, LogEntryFactory
from kubesd.stackdriver.resources import MonitoredResourceFactory
from kubesd.stackdriver.sink_config import SinkConfig
from kubesd.stackdriver.writer import SdWriter

logger = logging.getLogger(__name__)

RECEIVED_ENTRY_COUNT = telemetry.Counter(
    "received_entry_count",
    "Number of entries received by the Stackdriver sink",
    subsystem="stackdriver_sink",
)
telemetry.REGISTRY.register(RECEIVED_ENTRY_COUNT)

_POLL_INTERVAL = 0.05

_STARTED_MESSAGE = (
    "Event exporter started watching. Some events may have been lost up to this point."
)


class StackdriverSink(Sink):
    """Buffers entries and flushes them by size or after a delay.

    At most ``config.max_concurrency`` writes run at the same time; a flush
    beyond that waits for one of them to finish.
    """

    def __init__(
        self,
        writer: SdWriter,
        clock: Callable[[], datetime] | None,
        config: SinkConfig,
        resource_factory: MonitoredResourceFactory,
    ) -> None:
        self.writer = writer
        self.config = config
        self.log_name = config.log_name
        self.resource_factory = resource_factory
        self._entry_factory = LogEntryFactory(clock, resource_factory)
        self._entries: queue.Queue[LogEntry] = queue.Queue(maxsize=config.max_buffer_size)
        self._buffer: list[LogEntry] = []
        self._deadline: float | None = None
        self._slots = threading.Semaphore(config.max_concurrency)
        self._before_first_list = True

    def on_add(self, event: Event) -> None:
        RECEIVED_ENTRY_COUNT.inc()
        self._entries.put(self._entry_factory.from_event(event))

    def on_update(self, old_event: Event | None, new_event: Event) -> None:
        old_count = old_event.count if old_event is not None else 0
        if new_event.count != old_count + 1:
            # Compression may mean part of the watch history was lost; the
            # entry is still sent once rather than flooding the log.
            logger.debug(
                "Event count has increased by %d != 1.\n\tOld event: %r\n\tNew event: %r",
                new_event.count - old_count,
                old_event,
                new_event,
            )
        RECEIVED_ENTRY_COUNT.inc()
        self._entries.put(self._entry_factory.from_event(new_event))

    def on_delete(self, event: Event) -> None:
        """Deleted events are not exported; the deletion is only logged."""
        logger.debug("Ignoring deletion of event %r", event)

    def on_list(self, event_list: EventList) -> None:
        """Log that watching started, on the first list only."""
        if self._before_first_list:
            RECEIVED_ENTRY_COUNT.inc()
            entry = self._entry_factory.from_message(_STARTED_MESSAGE)
            self.writer.write([entry], self.log_name, self.resource_factory.default_resource)
            self._before_first_list = False

    def run(self, stop: threading.Event) -> None:
        logger.info("Starting Stackdriver sink")
        while not stop.is_set():
            timeout = _POLL_INTERVAL
            if self._deadline is not None:
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    self._flush()
                    continue
                timeout = min(timeout, remaining)
            try:
                entry = self._entries.get(timeout=timeout)
            except queue.Empty:
                continue
            self._buffer.append(entry)
            if len(self._buffer) >= self.config.max_buffer_size:
                self._flush()
            elif len(self._buffer) == 1:
                self._deadline = time.monotonic() + self.config.flush_delay

        logger.info("Stackdriver sink received stop signal, waiting for all requests to finish")
        for _ in range(self.config.max_concurrency):
            self._slots.acquire()
        logger.info("All requests to Stackdriver finished, exiting Stackdriver sink")

    def _flush(self) -> None:
        entries = self._buffer
        self._buffer = []
        self._deadline = None
        self._slots.acquire()
        threading.Thread(target=self._send_entries, args=(entries,), daemon=True).start()

    def _send_entries(self, entries: list[LogEntry]) -> None:
        logger.debug("Sending %d entries to Stackdriver", len(entries))
        try:
            self.writer.write(entries, self.log_name, self.resource_factory.default_resource)
        finally:
            self._slots.release()
        logger.debug("Successfully sent %d entries to Stackdriver", len(entries))