"""Sink that writes Kubernetes events as log entries."""