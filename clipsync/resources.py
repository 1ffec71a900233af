"""
Static resources served over plain HTTP (the phone's web client).
"""

import logging
import mimetypes
import os
from typing import Dict, NamedTuple, Optional

BUNDLED_WEB_ROOT = os.path.join(os.path.dirname(__file__), "web")


class Resource(NamedTuple):
    content_type: str
    body: bytes


def content_type_for(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    content_type = guessed or "application/octet-stream"
    if content_type.startswith("text/") or content_type in ("application/javascript", "application/json"):
        content_type += "; charset=utf-8"
    return content_type


class StaticResources:
    """
    Immutable name -> Resource table handed to the server.
    """

    def __init__(self, resources: Optional[Dict[str, Resource]] = None):
        self._resources = dict(resources or {})

    def resolve(self, name: str) -> Optional[Resource]:
        return self._resources.get(name)

    def names(self):
        return sorted(self._resources)

    def __len__(self):
        return len(self._resources)

    @classmethod
    def from_directory(cls, root: str) -> "StaticResources":
        """
        Load every regular file directly under ``root``.
        """
        resources = {}
        for entry in sorted(os.listdir(root)):
            path = os.path.join(root, entry)
            if not os.path.isfile(path):
                continue
            with open(path, "rb") as f:
                resources[entry] = Resource(content_type_for(entry), f.read())
        logging.info(f"Loaded {len(resources)} web resources from {root}")
        return cls(resources)

    @classmethod
    def bundled(cls) -> "StaticResources":
        return cls.from_directory(BUNDLED_WEB_ROOT)
