"""Polling a metrics source once and pushing its data."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import requests

from kubesd.monitor import metrics
from kubesd.monitor.timeseries import CreateTimeSeriesRequest
from kubesd.stackdriver.writer import ApiError

logger = logging.getLogger(__name__)

MAX_TIME_SERIES_PER_REQUEST = 200
DEFAULT_BASE_URL = "https://monitoring.googleapis.com/"


class MetricsSource(ABC):
    """Provides Kubernetes metrics as time series, e.g. from the kubelet."""

    @abstractmethod
    def get_time_series_request(self) -> CreateTimeSeriesRequest:
        """Scrape the backend and return its data as a request."""

    @abstractmethod
    def name(self) -> str:
        """Return the name of the monitored component."""

    @abstractmethod
    def project_path(self) -> str:
        """Return the project path the data belongs to."""


class MonitoringClient:
    """Creates time series through the monitoring API over HTTP."""

    def __init__(
        self,
        session: Any = None,
        endpoint: str = "",
        token_source: Callable[[], str] | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self.base_url = (endpoint or DEFAULT_BASE_URL).rstrip("/") + "/"
        self._token_source = token_source
        self._timeout = timeout

    def create_time_series(
        self, project_path: str, request: CreateTimeSeriesRequest
    ) -> None:
        """Write ``request`` to ``project_path``; raises ApiError on failure."""
        headers = {"Content-Type": "application/json"}
        if self._token_source is not None:
            headers["Authorization"] = f"Bearer {self._token_source()}"
        response = self._session.post(
            f"{self.base_url}v3/{project_path}/timeSeries",
            json=request.to_dict(),
            headers=headers,
            timeout=self._timeout,
        )
        if not 200 <= response.status_code < 300:
            raise ApiError(response.status_code, response.text)


def sub_requests(req: CreateTimeSeriesRequest) -> list[CreateTimeSeriesRequest]:
    """Split ``req`` into requests of at most the allowed number of series."""
    series = req.time_series
    if len(series) <= MAX_TIME_SERIES_PER_REQUEST:
        return [req]
    chunks = [
        CreateTimeSeriesRequest(series[start : start + MAX_TIME_SERIES_PER_REQUEST])
        for start in range(0, len(series), MAX_TIME_SERIES_PER_REQUEST)
    ]
    logger.debug("Splitting CreateTimeSeriesRequest into %d requests", len(chunks))
    return chunks


def once(src: MetricsSource, gcm: Any) -> None:
    """Poll ``src`` one time and push its data through ``gcm``."""
    scraped_at = time.monotonic()
    # Any failure of a scrape or a push is reported and ends this round.
    try:
        req = src.get_time_series_request()
    except Exception as exc:
        metrics.observe_failed_scrape(src.name())
        logger.warning("Failed to create time series request: %s", exc)
        return
    metrics.observe_successful_scrape(src.name())

    for sub in sub_requests(req):
        try:
            gcm.create_time_series(src.project_path(), sub)
        except Exception as exc:
            logger.warning("Failed to write time series data, err: %s", exc)
            metrics.observe_failed_request(len(sub.time_series))
            logger.warning("JSON GCM: %s", json.dumps(sub.to_dict()))
            return
        logger.debug("Successfully wrote TimeSeries data for %s.", src.name())
        metrics.observe_successful_request(len(sub.time_series))
        metrics.observe_ingestion_latency(
            len(sub.time_series), time.monotonic() - scraped_at
        )