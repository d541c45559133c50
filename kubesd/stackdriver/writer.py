"""Writing log entries to the logging API."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence

import requests

from kubesd import telemetry
from kubesd.stackdriver.log_entry import LogEntry
from kubesd.stackdriver.resources import MonitoredResource

logger = logging.getLogger(__name__)

RETRY_DELAY = 10.0
DEFAULT_BASE_URL = "https://logging.googleapis.com/"
_WRITE_PATH = "v2/entries:write"

REQUEST_COUNT = telemetry.LabeledCounter(
    "request_count",
    "Number of request, issued to Stackdriver API",
    ["code"],
    subsystem="stackdriver_sink",
)
SUCCESSFULLY_SENT_ENTRY_COUNT = telemetry.Counter(
    "successfully_sent_entry_count",
    "Number of entries successfully ingested by Stackdriver",
    subsystem="stackdriver_sink",
)
telemetry.REGISTRY.register(REQUEST_COUNT, SUCCESSFULLY_SENT_ENTRY_COUNT)


class ApiError(Exception):
    """The API answered with an error status."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(f"googleapi: Error {code}: {message}")
        self.code = code
        self.message = message


class SdWriter(ABC):
    """Writes batches of log entries."""

    @abstractmethod
    def write(
        self,
        entries: Sequence[LogEntry],
        log_name: str,
        resource: MonitoredResource | None,
    ) -> None:
        """Write ``entries`` to ``log_name`` with ``resource`` as default."""


class LoggingWriter(SdWriter):
    """Writes entries over HTTP, retrying forever unless the request is bad."""

    def __init__(
        self,
        session: Any = None,
        endpoint: str = "",
        token_source: Callable[[], str] | None = None,
        retry_delay: float = RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 60.0,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        base = endpoint or DEFAULT_BASE_URL
        self._url = base.rstrip("/") + "/" + _WRITE_PATH
        self._token_source = token_source
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._timeout = timeout

    def write(
        self,
        entries: Sequence[LogEntry],
        log_name: str,
        resource: MonitoredResource | None,
    ) -> None:
        body: dict[str, Any] = {
            "entries": [entry.to_dict() for entry in entries],
            "logName": log_name,
        }
        if resource is not None:
            body["resource"] = resource.to_dict()

        # Retry until success or a bad request; a malformed request, e.g.
        # one with too large entries, would never be accepted.
        while True:
            try:
                code = self._send(body)
            except ApiError as exc:
                REQUEST_COUNT.labels(str(exc.code)).inc()
                if exc.code == 400:
                    logger.warning(
                        "Received bad request response from server, "
                        "assuming some entries were rejected: %s",
                        exc,
                    )
                    return
                logger.warning("Failed to send request to Stackdriver: %s", exc)
            except Exception as exc:  # any transport or credential failure is retried
                logger.warning("Failed to send request to Stackdriver: %s", exc)
            else:
                REQUEST_COUNT.labels(str(code)).inc()
                SUCCESSFULLY_SENT_ENTRY_COUNT.add(len(entries))
                return
            self._sleep(self._retry_delay)

    def _send(self, body: dict[str, Any]) -> int:
        headers = {"Content-Type": "application/json"}
        if self._token_source is not None:
            headers["Authorization"] = f"Bearer {self._token_source()}"
        response = self._session.post(
            self._url, json=body, headers=headers, timeout=self._timeout
        )
        if not 200 <= response.status_code < 300:
            raise ApiError(response.status_code, response.text)
        return response.status_code