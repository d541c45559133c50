[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubesd"
version = "0.1.0"
description = "Write Kubernetes events to Cloud Logging and push controller-manager metrics to Cloud Monitoring"
requires-python = ">=3.10"
keywords = [
    "kubernetes",
    "events",
    "monitoring",
    "logging",
    "stackdriver",
    "metrics",
    "prometheus",
    "gce",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Logging",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kubesd"]

[tool.hatch.build.targets.sdist]
include = [
    "kubesd",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
