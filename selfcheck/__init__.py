"""TTL self-health-check sidecar for a service registry."""

__version__ = "1.0.0"
