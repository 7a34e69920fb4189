"""
Discovery: the host's read endpoint for checkpoint indexes, and its clients.
"""

from .client import DiscoveryClient, HttpDiscoveryClient, LocalDiscoveryClient
from .service import DiscoveryService

__all__ = [
    "DiscoveryClient",
    "DiscoveryService",
    "HttpDiscoveryClient",
    "LocalDiscoveryClient",
]
