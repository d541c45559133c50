"""Kubernetes event model, handler interfaces and concurrency helper."""