"""
Service Registry Adapters

- RegistryClient - abstract capability used by the heartbeat loop
- ConsulRegistryClient - Consul agent HTTP API implementation
"""

from .client import RegistryClient
from .consul import ConsulRegistryClient, build_registration_payload

__all__ = ["RegistryClient", "ConsulRegistryClient", "build_registration_payload"]
