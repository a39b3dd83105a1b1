"""
Self-Check Sidecar Services

- registry - RegistryClient capability and the Consul adapter
- heartbeat - liveness probes, heartbeat loop, shutdown controller
"""
