"""
Discovery clients used by the recovery engine.

HttpDiscoveryClient talks to a host's discovery endpoint; LocalDiscoveryClient
wraps an in-process DiscoveryService.
"""

import json
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Optional

from ..core.errors import NotFoundError, TransientStorageError
from ..index.model import CheckpointIndex
from .service import DiscoveryService


class DiscoveryClient(ABC):
    @abstractmethod
    def get_index(self, session_id: str) -> Optional[CheckpointIndex]:
        """
        Fetch a session's index.

        Returns:
            CheckpointIndex, or None when the host has no checkpoints for it

        Raises:
            TransientStorageError: If the host cannot be reached or answers with an error
        """
        ...


class HttpDiscoveryClient(DiscoveryClient):
    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def get_index(self, session_id: str) -> Optional[CheckpointIndex]:
        url = f"{self.base_url}/checkpoints/{urllib.parse.quote(session_id, safe='')}"
        req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            if e.code == 404:
                return None
            raise TransientStorageError(f"Discovery request failed with HTTP {e.code}: {url}") from e
        except urllib.error.URLError as e:
            raise TransientStorageError(f"Discovery endpoint unreachable: {e.reason}") from e

        try:
            return CheckpointIndex.from_dict(json.loads(body))
        except ValueError as e:
            raise TransientStorageError(f"Discovery returned a malformed index: {e}") from e


class LocalDiscoveryClient(DiscoveryClient):
    def __init__(self, service: DiscoveryService):
        self.service = service

    def get_index(self, session_id: str) -> Optional[CheckpointIndex]:
        try:
            return self.service.get_checkpoints(session_id)
        except NotFoundError:
            return None
