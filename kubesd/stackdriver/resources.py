"""Monitored resources describing where an event came from."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kubesd import gce
from kubesd.exporter.events import Event

logger = logging.getLogger(__name__)

GKE_CLUSTER = "gke_cluster"
K8S_CLUSTER = "k8s_cluster"
K8S_NODE = "k8s_node"
K8S_POD = "k8s_pod"

CLUSTER_NAME = "cluster_name"
LOCATION = "location"
PROJECT_ID = "project_id"
POD_NAME = "pod_name"
NODE_NAME = "node_name"
NAMESPACE_NAME = "namespace_name"

POD_KIND = "Pod"
NODE_KIND = "Node"


class ResourceModelVersion(str, Enum):
    """Monitored resource model used for exports."""

    NEW = "new"
    OLD = "old"


@dataclass
class MonitoredResource:
    """A typed set of labels identifying a monitored resource."""

    type: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.type:
            result["type"] = self.type
        if self.labels:
            result["labels"] = dict(self.labels)
        return result


@dataclass
class MonitoredResourceFactoryConfig:
    """Settings for :class:`MonitoredResourceFactory`."""

    resource_model: ResourceModelVersion
    cluster_name: str
    location: str
    project_id: str


class MonitoredResourceFactory:
    """Builds monitored resources for events."""

    def __init__(self, config: MonitoredResourceFactoryConfig) -> None:
        self.resource_model = config.resource_model
        self.common_labels = {
            CLUSTER_NAME: config.cluster_name,
            LOCATION: config.location,
            PROJECT_ID: config.project_id,
        }
        resource_type = (
            GKE_CLUSTER if config.resource_model is ResourceModelVersion.OLD else K8S_CLUSTER
        )
        self.default_resource = MonitoredResource(resource_type, dict(self.common_labels))

    def resource_from_event(self, event: Event | None) -> MonitoredResource:
        """Return the resource for the object the event is about."""
        if self.resource_model is ResourceModelVersion.OLD or event is None:
            return self.default_resource
        involved = event.involved_object
        if involved.kind == POD_KIND:
            labels = dict(self.common_labels)
            labels[POD_NAME] = involved.name
            labels[NAMESPACE_NAME] = involved.namespace
            return MonitoredResource(K8S_POD, labels)
        if involved.kind == NODE_KIND:
            labels = dict(self.common_labels)
            labels[NODE_NAME] = involved.name
            return MonitoredResource(K8S_NODE, labels)
        return self.default_resource


def get_resource_model_version(model: str) -> ResourceModelVersion:
    """Map a user-supplied model name to a version; anything but "new" is old."""
    if model == ResourceModelVersion.NEW.value:
        return ResourceModelVersion.NEW
    return ResourceModelVersion.OLD


def new_monitored_resource_factory_config(
    resource_model_version: str,
) -> MonitoredResourceFactoryConfig:
    """Build a factory config from the instance metadata."""
    try:
        cluster_name = gce.instance_attribute_value("cluster-name")
    except gce.MetadataError:
        logger.warning(
            "'cluster-name' label is not specified on the VM, defaulting to the empty value"
        )
        cluster_name = ""
    cluster_name = cluster_name.strip()

    try:
        project = gce.project_id()
    except gce.MetadataError as exc:
        raise gce.MetadataError(f"failed to get project id: {exc}") from exc

    error: Exception | None = None
    try:
        location = gce.instance_attribute_value("cluster-location").strip()
    except gce.MetadataError as exc:
        location = ""
        error = exc
    if error is not None or not location:
        logger.warning(
            "Failed to retrieve cluster location, falling back to local zone: %s", error
        )
        try:
            location = gce.metadata_zone()
        except gce.MetadataError as exc:
            raise gce.MetadataError(
                f"error while getting cluster location: {exc}"
            ) from exc

    return MonitoredResourceFactoryConfig(
        resource_model=get_resource_model_version(resource_model_version),
        cluster_name=cluster_name,
        location=location,
        project_id=project,
    )