"""Instance metadata lookups and source configuration on GCE."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field

import requests

logger = logging.getLogger(__name__)

GCE_METADATA_ENDPOINT = "http://169.254.169.254"
GCE_METADATA_PREFIX = "/computeMetadata/v1"
METADATA_HOST_ENV = "GCE_METADATA_HOST"
USE_GCE = "use-gce"
USE_INSTANCE_NAME = "use-instance-name"

_DEFAULT_METADATA_HOST = "169.254.169.254"
_HEADERS = {"Metadata-Flavor": "Google"}
_TIMEOUT = 10.0


class MetadataError(Exception):
    """The instance metadata server could not provide a value."""


@dataclass
class SourceConfig:
    """Data required to configure a Kubernetes data source.

    ``resolution`` is the polling period in seconds.
    """

    zone: str = ""
    project: str = ""
    cluster: str = ""
    cluster_location: str = ""
    host: str = ""
    instance: str = ""
    instance_id: str = ""
    schema_prefix: str = ""
    certificate_location: str = ""
    monitored_resource_labels: dict[str, str] = field(default_factory=dict)
    port: int = 0
    resolution: float = 0.0


def metadata_uri(resource: str) -> str:
    """Return the full metadata server URI for ``resource``."""
    return GCE_METADATA_ENDPOINT + GCE_METADATA_PREFIX + resource


def get_gce_metadata(uri: str) -> str:
    """Fetch ``uri`` from the instance's metadata server and return the body."""
    try:
        response = requests.get(uri, headers=dict(_HEADERS), timeout=_TIMEOUT)
    except requests.RequestException as exc:
        raise MetadataError(f"Failed request {uri!r} for GCE metadata: {exc}") from exc
    return response.text


def _lookup(resource: str, what: str) -> str:
    try:
        return get_gce_metadata(metadata_uri(resource))
    except MetadataError as exc:
        raise MetadataError(f"Failed to get {what} from GCE: {exc}") from exc


def get_zone(zone: str) -> str:
    """Return ``zone``, or the instance's zone when asked to use GCE."""
    if zone == USE_GCE:
        body = _lookup("/instance/zone", "zone")
        zone = body.split("/")[-1]
    return zone


def get_project_id(project_id: str) -> str:
    """Return ``project_id``, or the project from GCE when asked."""
    if project_id == USE_GCE:
        project_id = _lookup("/project/project-id", "project id")
    return project_id


def get_cluster(cluster: str) -> str:
    """Return the cluster name, or the one from GCE when asked."""
    if cluster == USE_GCE:
        cluster = _lookup("/instance/attributes/cluster-name", "cluster name")
    return cluster


def get_cluster_location(cluster_location: str) -> str:
    """Return the cluster location, or the one from GCE when asked."""
    if cluster_location == USE_GCE:
        cluster_location = _lookup(
            "/instance/attributes/cluster-location", "cluster location"
        )
    return cluster_location


def get_kubelet_host(kubelet_host: str) -> str:
    """Return the kubelet host, the IP of interface 0, or the instance name."""
    if kubelet_host == USE_GCE:
        kubelet_host = _lookup("/instance/network-interfaces/0/ip", "instance IP")
    if kubelet_host == USE_INSTANCE_NAME:
        return get_instance(USE_GCE)
    return kubelet_host


def get_instance(instance: str) -> str:
    """Return the short instance name, fetching the hostname when asked."""
    if instance == USE_GCE:
        instance = _lookup("/instance/hostname", "hostname")
    return instance.split(".")[0]


def get_instance_id() -> str:
    """Return the numeric id of this instance."""
    return _lookup("/instance/id", "instance id")


def new_configs(
    zone: str,
    project_id: str,
    cluster: str,
    cluster_location: str,
    host: str,
    instance: str,
    schema_prefix: str,
    certificate_location: str,
    monitored_resource_labels: dict[str, str],
    kubelet_port: int,
    ctrl_port: int,
    resolution: float,
) -> tuple[SourceConfig, SourceConfig]:
    """Return the kubelet and controller configs, resolving GCE values."""
    zone = get_zone(zone)
    project_id = get_project_id(project_id)
    cluster = get_cluster(cluster)
    cluster_location = get_cluster_location(cluster_location)
    host = get_kubelet_host(host)
    instance = get_instance(instance)
    instance_id = get_instance_id()

    common = dict(
        zone=zone,
        project=project_id,
        cluster=cluster,
        cluster_location=cluster_location,
        host=host,
        instance=instance,
        instance_id=instance_id,
        schema_prefix=schema_prefix,
        monitored_resource_labels=monitored_resource_labels,
        resolution=resolution,
    )
    kubelet_config = SourceConfig(
        port=kubelet_port, certificate_location=certificate_location, **common
    )
    ctrl_config = SourceConfig(port=ctrl_port, **common)
    return kubelet_config, ctrl_config


def _metadata_host() -> str:
    return os.environ.get(METADATA_HOST_ENV) or _DEFAULT_METADATA_HOST


def _fetch(suffix: str, params: dict[str, str] | None = None) -> str:
    url = f"http://{_metadata_host()}{GCE_METADATA_PREFIX}/{suffix}"
    try:
        response = requests.get(
            url, headers=dict(_HEADERS), params=params, timeout=_TIMEOUT
        )
    except requests.RequestException as exc:
        raise MetadataError(f"metadata request {suffix!r} failed: {exc}") from exc
    if response.status_code == 404:
        raise MetadataError(f"metadata {suffix!r} not defined")
    if response.status_code != 200:
        raise MetadataError(
            f"metadata request {suffix!r} failed with status {response.status_code}"
        )
    return response.text


def on_gce() -> bool:
    """Report whether this process runs on a GCE instance."""
    if os.environ.get(METADATA_HOST_ENV):
        return True
    try:
        response = requests.get(
            f"http://{_DEFAULT_METADATA_HOST}", headers=dict(_HEADERS), timeout=_TIMEOUT
        )
    except requests.RequestException:
        return False
    return response.headers.get("Metadata-Flavor") == "Google"


def instance_attribute_value(name: str) -> str:
    """Return the value of the instance attribute ``name``."""
    return _fetch(f"instance/attributes/{name}")


def project_id() -> str:
    """Return the id of the project this instance belongs to."""
    return _fetch("project/project-id").strip()


def metadata_zone() -> str:
    """Return the zone of this instance."""
    return _fetch("instance/zone").strip().split("/")[-1]


def access_token(scope: str) -> str:
    """Return an access token of the default service account for ``scope``."""
    body = _fetch("instance/service-accounts/default/token", params={"scopes": scope})
    try:
        token = json.loads(body)["access_token"]
    except (ValueError, KeyError, TypeError) as exc:
        raise MetadataError(f"malformed token response: {exc}") from exc
    return token