"""Kubernetes event logging and controller-manager metrics for Google Cloud."""

__version__ = "0.1.0"