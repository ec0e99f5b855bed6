"""Open the service mesh dashboard through a local Kubernetes API tunnel."""

__version__ = "0.1.0"
